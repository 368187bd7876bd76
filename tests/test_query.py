from typing import Any

import pytest

from fastapi_permquery import And, Leaf, Or, Query, SchemaError, SchemaErrorCode, validate_query


class TestQueryTypes:
    def test_leaf_equality_and_hash(self) -> None:
        assert Leaf("a") == Leaf("a")
        assert len({Leaf("a"), Leaf("a"), Leaf("b")}) == 2

    def test_and_or_with_same_operands_are_not_equal(self) -> None:
        assert And([Leaf("a")]) != Or([Leaf("a")])
        assert And([Leaf("a")]) == And([Leaf("a")])

    def test_to_payload(self) -> None:
        query = And([Leaf("a"), Or([Leaf("b"), Leaf("c")])])
        assert query.to_payload() == {"and": ["a", {"or": ["b", "c"]}]}

    def test_str_renders_text_syntax(self) -> None:
        query = And([Leaf("a"), Or([Leaf("b"), Leaf("c")])])
        assert str(query) == "a AND (b OR c)"

    def test_repr(self) -> None:
        assert repr(Or([Leaf("a")])) == "Or([Leaf('a')])"

    def test_leaf_is_immutable(self) -> None:
        leaf = Leaf("a")
        queries = {leaf}
        with pytest.raises(AttributeError):
            leaf.value = "b"  # type: ignore[misc]
        with pytest.raises(AttributeError):
            del leaf.value
        assert leaf.value == "a"
        assert Leaf("a") in queries

    def test_combinators_are_immutable(self) -> None:
        query = And([Leaf("a")])
        with pytest.raises(AttributeError):
            query.operands = (Leaf("b"),)  # type: ignore[misc]
        with pytest.raises(AttributeError):
            Or([Leaf("a")]).extra = 1  # type: ignore[attr-defined]
        assert query.operands == (Leaf("a"),)


class TestValidatePayload:
    def test_bare_string_is_leaf(self) -> None:
        assert validate_query("domain.manager") == Leaf("domain.manager")

    def test_nested_payload(self) -> None:
        query = validate_query({"or": ["a", {"and": ["b", "c"]}]})
        assert query == Or([Leaf("a"), And([Leaf("b"), Leaf("c")])])

    @pytest.mark.parametrize(
        ("payload", "code"),
        [
            (42, SchemaErrorCode.WRONG_TYPE),
            (None, SchemaErrorCode.WRONG_TYPE),
            (["a", "b"], SchemaErrorCode.WRONG_TYPE),
            ({}, SchemaErrorCode.MISSING_OPERATOR),
            ({"and": ["a"], "or": ["b"]}, SchemaErrorCode.CONFLICTING_OPERATORS),
            ({"not": ["a"]}, SchemaErrorCode.UNEXPECTED_KEY),
            ({"and": ["a"], "extra": 1}, SchemaErrorCode.UNEXPECTED_KEY),
            ({"and": "a"}, SchemaErrorCode.OPERANDS_NOT_LIST),
            ({"and": []}, SchemaErrorCode.EMPTY_OPERANDS),
            ({"or": []}, SchemaErrorCode.EMPTY_OPERANDS),
        ],
    )
    def test_malformed_payloads_are_rejected(self, payload: Any, code: SchemaErrorCode) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query(payload)
        assert exc_info.value.code == code

    def test_error_carries_offending_value(self) -> None:
        payload = {"and": ["a"], "or": ["b"]}
        with pytest.raises(SchemaError) as exc_info:
            validate_query(payload)
        assert exc_info.value.value is payload

    def test_error_path_points_at_nested_node(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query({"and": ["a", {"or": ["b", {"or": []}]}]})
        error = exc_info.value
        assert error.code == SchemaErrorCode.EMPTY_OPERANDS
        assert error.path == ("and", 1, "or", 1, "or")
        assert error.value == []

    def test_wrong_type_operand_path(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query({"or": ["a", 7]})
        assert exc_info.value.code == SchemaErrorCode.WRONG_TYPE
        assert exc_info.value.path == ("or", 1)
        assert exc_info.value.value == 7

    def test_depth_limit(self) -> None:
        payload: Any = "a"
        for _ in range(5):
            payload = {"and": [payload]}

        assert validate_query(payload, max_depth=5) is not None
        with pytest.raises(SchemaError) as exc_info:
            validate_query(payload, max_depth=4)
        assert exc_info.value.code == SchemaErrorCode.TOO_DEEP


class TestValidateQueryInstance:
    def test_valid_instance_is_returned_unchanged(self) -> None:
        query = And([Leaf("a"), Or([Leaf("b")])])
        assert validate_query(query) is query

    def test_empty_combinator_is_rejected(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query(Or([Leaf("a"), And([])]))
        assert exc_info.value.code == SchemaErrorCode.EMPTY_OPERANDS
        assert exc_info.value.path == ("or", 1, "and")

    def test_non_string_leaf_is_rejected(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query(Leaf(5))  # type: ignore[arg-type]
        assert exc_info.value.code == SchemaErrorCode.WRONG_TYPE

    def test_non_query_operand_is_rejected(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            validate_query(And([Leaf("a"), "b"]))  # type: ignore[list-item]
        assert exc_info.value.code == SchemaErrorCode.WRONG_TYPE
        assert exc_info.value.path == ("and", 1)

    def test_unknown_query_subclass_is_rejected(self) -> None:
        class Not(Query):
            __slots__ = ()

        with pytest.raises(SchemaError) as exc_info:
            validate_query(Not())
        assert exc_info.value.code == SchemaErrorCode.WRONG_TYPE
