import pytest

from fastapi_permquery import And, Leaf, Or, SchemaError, SchemaErrorCode, parse_query
from fastapi_permquery.parser import TokenType, tokenize


class TestTokenize:
    def test_operators_are_case_insensitive(self) -> None:
        types = [token.type for token in tokenize("a and b Or c AND d")]
        assert types == [
            TokenType.PERMISSION,
            TokenType.AND,
            TokenType.PERMISSION,
            TokenType.OR,
            TokenType.PERMISSION,
            TokenType.AND,
            TokenType.PERMISSION,
            TokenType.EOF,
        ]

    def test_operator_inside_identifier_is_not_an_operator(self) -> None:
        tokens = tokenize("ANDROID.read OR oracle.admin")
        assert [t.value for t in tokens if t.type is TokenType.PERMISSION] == ["ANDROID.read", "oracle.admin"]

    def test_identifier_characters(self) -> None:
        tokens = tokenize("api.*.read_key system:admin /api/v1/x kebab-case")
        assert [t.value for t in tokens[:-1]] == ["api.*.read_key", "system:admin", "/api/v1/x", "kebab-case"]

    def test_positions(self) -> None:
        tokens = tokenize("(a  OR b)")
        assert [(t.value, t.pos) for t in tokens] == [("(", 0), ("a", 1), ("OR", 4), ("b", 7), (")", 8), ("", 9)]


class TestParseQuery:
    def test_single_permission(self) -> None:
        assert parse_query("api.*.read_api") == Leaf("api.*.read_api")

    def test_and_binds_tighter_than_or(self) -> None:
        assert parse_query("a OR b AND c") == Or([Leaf("a"), And([Leaf("b"), Leaf("c")])])

    def test_parentheses_override_precedence(self) -> None:
        assert parse_query("(a OR b) AND c") == And([Or([Leaf("a"), Leaf("b")]), Leaf("c")])

    def test_chains_flatten(self) -> None:
        assert parse_query("a AND b AND c") == And([Leaf("a"), Leaf("b"), Leaf("c")])
        assert parse_query("a or b or c") == Or([Leaf("a"), Leaf("b"), Leaf("c")])

    def test_whitespace_is_ignored(self) -> None:
        assert parse_query("  a\n\tAND\r\n b ") == And([Leaf("a"), Leaf("b")])

    def test_redundant_parentheses(self) -> None:
        assert parse_query("((a))") == Leaf("a")

    def test_text_round_trip(self) -> None:
        text = "api.*.read_api AND (api.*.create_key OR api.*.update_key)"
        assert str(parse_query(text)) == text


class TestParseQueryErrors:
    @pytest.mark.parametrize(
        ("text", "position"),
        [
            ("", 0),
            ("   ", 0),
            ("a AND", 5),
            ("a b", 2),
            ("()", 1),
            ("(a OR b", 7),
            (")", 0),
            ("a AND OR b", 6),
            ("a & b", 2),
            ("a AND (b", 8),
        ],
    )
    def test_syntax_errors_report_position(self, text: str, position: int) -> None:
        with pytest.raises(SchemaError) as exc_info:
            parse_query(text)
        assert exc_info.value.code == SchemaErrorCode.SYNTAX_ERROR
        assert exc_info.value.position == position
        assert exc_info.value.value == text

    def test_invalid_character_message(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            parse_query("a & b")
        assert exc_info.value.message.startswith("Invalid character '&' found in query at position 2.")

    def test_too_long(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            parse_query("a" * 1001)
        assert exc_info.value.code == SchemaErrorCode.TOO_LONG

    def test_max_length_is_configurable(self) -> None:
        assert parse_query("a" * 1001, max_length=2000) == Leaf("a" * 1001)
        with pytest.raises(SchemaError):
            parse_query("a OR b", max_length=5)

    def test_non_string_input(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            parse_query(["a"])  # type: ignore[arg-type]
        assert exc_info.value.code == SchemaErrorCode.WRONG_TYPE

    def test_nesting_limit(self) -> None:
        text = "(" * 65 + "a" + ")" * 65
        with pytest.raises(SchemaError) as exc_info:
            parse_query(text)
        assert exc_info.value.code == SchemaErrorCode.TOO_DEEP
        assert exc_info.value.position == 64
        assert parse_query("(" * 64 + "a" + ")" * 64) == Leaf("a")

    def test_deeply_nested_input_within_length_limit_is_rejected_cleanly(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            parse_query("(" * 500 + "a" + ")" * 499)
        assert exc_info.value.code == SchemaErrorCode.TOO_DEEP
