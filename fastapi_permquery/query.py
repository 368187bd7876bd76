"""Permission queries: a boolean expression tree over permission strings.

A query is either a single permission (``Leaf``) or an ``And``/``Or`` over
a non-empty list of sub-queries. On the wire it is JSON: a bare string, or
an object with exactly one of the keys ``"and"``/``"or"`` mapping to an array
of queries.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from fastapi_permquery.errors import SchemaError, SchemaErrorCode

AND = "and"
OR = "or"
OPERATORS = (AND, OR)

MAX_QUERY_DEPTH = 64

Path = tuple[str | int, ...]


class Query:
    """Base class of the query sum type. Use ``Leaf``, ``And`` or ``Or``.

    Nodes are immutable once built.
    """

    __slots__ = ()

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError(f"{self.__class__.__name__} is immutable")

    def to_payload(self) -> Any:
        raise NotImplementedError


class Leaf(Query):
    """A single permission or role name that must be present in the grants."""

    __slots__ = ("value",)

    def __init__(self, value: str) -> None:
        object.__setattr__(self, "value", value)

    def to_payload(self) -> Any:
        return self.value

    def __str__(self) -> str:
        return self.value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Leaf):
            return NotImplemented
        return self.value == other.value

    def __hash__(self) -> int:
        return hash((Leaf, self.value))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.value!r})"


class _Combinator(Query):
    __slots__ = ("operands",)

    operator: str

    def __init__(self, operands: Iterable[Query]) -> None:
        object.__setattr__(self, "operands", tuple(operands))

    def to_payload(self) -> Any:
        return {self.operator: [operand.to_payload() for operand in self.operands]}

    def __str__(self) -> str:
        parts = [str(op) if isinstance(op, Leaf) else f"({op})" for op in self.operands]
        return f" {self.operator.upper()} ".join(parts)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, _Combinator):
            return NotImplemented
        return type(self) is type(other) and self.operands == other.operands

    def __hash__(self) -> int:
        return hash((type(self), self.operands))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({list(self.operands)!r})"


class And(_Combinator):
    """Satisfied iff every operand is satisfied."""

    __slots__ = ()
    operator = AND


class Or(_Combinator):
    """Satisfied iff at least one operand is satisfied."""

    __slots__ = ()
    operator = OR


def validate_query(query: Any, *, max_depth: int = MAX_QUERY_DEPTH) -> Query:
    """Check the shape of a query before it is evaluated.

    Args:
        query: A JSON-decoded payload (str or dict) or a ``Query`` instance.
        max_depth: Maximum nesting of ``and``/``or`` operators.

    Returns:
        The typed query tree. A ``Query`` instance is returned unchanged.

    Raises:
        SchemaError: If the query has any other shape.
    """
    if isinstance(query, Query):
        _check_query(query, (), 0, max_depth)
        return query
    return _from_payload(query, (), 0, max_depth)


def _check_depth(value: Any, path: Path, depth: int, max_depth: int) -> None:
    if depth > max_depth:
        raise SchemaError(
            SchemaErrorCode.TOO_DEEP,
            f"Query is nested deeper than {max_depth} levels",
            value,
            path,
        )


def _from_payload(payload: Any, path: Path, depth: int, max_depth: int) -> Query:
    if isinstance(payload, str):
        return Leaf(payload)

    if not isinstance(payload, Mapping):
        raise SchemaError(
            SchemaErrorCode.WRONG_TYPE,
            f"Expected a permission string or an object with 'and' or 'or', got {type(payload).__name__}",
            payload,
            path,
        )

    operators = [key for key in OPERATORS if key in payload]
    unexpected = [key for key in payload if key not in OPERATORS]
    if unexpected:
        raise SchemaError(
            SchemaErrorCode.UNEXPECTED_KEY,
            f"Unexpected key {unexpected[0]!r}, only 'and' or 'or' are allowed",
            payload,
            path,
        )
    if not operators:
        raise SchemaError(
            SchemaErrorCode.MISSING_OPERATOR,
            "Query object must contain exactly one of 'and' or 'or'",
            payload,
            path,
        )
    if len(operators) > 1:
        raise SchemaError(
            SchemaErrorCode.CONFLICTING_OPERATORS,
            "Query object must not contain both 'and' and 'or'",
            payload,
            path,
        )

    operator = operators[0]
    operands = payload[operator]
    operator_path = (*path, operator)
    _check_depth(payload, path, depth + 1, max_depth)

    if not isinstance(operands, list):
        raise SchemaError(
            SchemaErrorCode.OPERANDS_NOT_LIST,
            f"'{operator}' must be an array of queries",
            operands,
            operator_path,
        )
    if not operands:
        raise SchemaError(
            SchemaErrorCode.EMPTY_OPERANDS,
            f"'{operator}' must contain at least one query",
            operands,
            operator_path,
        )

    children = [
        _from_payload(operand, (*operator_path, i), depth + 1, max_depth) for i, operand in enumerate(operands)
    ]
    return And(children) if operator == AND else Or(children)


def _check_query(query: Query, path: Path, depth: int, max_depth: int) -> None:
    if isinstance(query, Leaf):
        if not isinstance(query.value, str):
            raise SchemaError(
                SchemaErrorCode.WRONG_TYPE,
                f"Leaf value must be a string, got {type(query.value).__name__}",
                query,
                path,
            )
        return

    if not isinstance(query, _Combinator):
        raise SchemaError(
            SchemaErrorCode.WRONG_TYPE,
            f"Unknown query node {type(query).__name__}",
            query,
            path,
        )

    operator_path = (*path, query.operator)
    _check_depth(query, path, depth + 1, max_depth)
    if not query.operands:
        raise SchemaError(
            SchemaErrorCode.EMPTY_OPERANDS,
            f"'{query.operator}' must contain at least one query",
            query,
            operator_path,
        )
    for i, operand in enumerate(query.operands):
        if not isinstance(operand, Query):
            raise SchemaError(
                SchemaErrorCode.WRONG_TYPE,
                f"Operand must be a query, got {type(operand).__name__}",
                operand,
                (*operator_path, i),
            )
        _check_query(operand, (*operator_path, i), depth + 1, max_depth)
