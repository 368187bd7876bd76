import logging
from collections.abc import Callable, Iterable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict

from fastapi_permquery.errors import SchemaError, SchemaErrorCode
from fastapi_permquery.permissions import implies
from fastapi_permquery.query import MAX_QUERY_DEPTH, And, Leaf, Or, Query, validate_query

logger = logging.getLogger(__name__)

NO_ROLE_MATCHED = "No role matched"


class WildcardMode(StrEnum):
    """How grants are compared with leaf permissions.

    LITERAL: a grant matches a leaf only if the strings are equal; a granted
        '*' only satisfies a required '*'.
    EXPAND: grants are matched with ``implies``; a granted '*' satisfies every
        leaf and 'api.*.read_key' satisfies 'api.<any id>.read_key'.
    """

    LITERAL = "literal"
    EXPAND = "expand"


class Decision(BaseModel):
    """Outcome of evaluating a structurally valid query."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    message: str | None = None
    # Every branch message of a denied Or, collected only in verbose mode.
    reasons: tuple[str, ...] = ()

    @classmethod
    def allow(cls) -> "Decision":
        return cls(valid=True)

    @classmethod
    def deny(cls, message: str, reasons: Iterable[str] = ()) -> "Decision":
        return cls(valid=False, message=message, reasons=tuple(reasons))


def leaf_denied_message(value: str) -> str:
    return f"Role {value} not allowed"


def check_grants(grants: Any) -> None:
    """Reject a single string passed where a collection of grants is expected.

    Iterating "admin" would grant "a", "d", "m", "i" and "n".

    Raises:
        TypeError: If ``grants`` is a str or bytes.
    """
    if isinstance(grants, (str, bytes, bytearray)):
        raise TypeError(f"Grants must be a collection of strings, not a single {type(grants).__name__}: {grants!r}")


def _literal_matcher(grants: Iterable[str]) -> Callable[[str], bool]:
    granted = frozenset(grants)
    return granted.__contains__


def _expanding_matcher(grants: Iterable[str]) -> Callable[[str], bool]:
    granted = tuple(grants)
    return lambda required: any(implies(held, required) for held in granted)


def _evaluate(query: Query, matches: Callable[[str], bool], verbose: bool) -> Decision:
    if isinstance(query, Leaf):
        if matches(query.value):
            return Decision.allow()
        return Decision.deny(leaf_denied_message(query.value))

    if isinstance(query, And):
        for operand in query.operands:
            result = _evaluate(operand, matches, verbose)
            if not result.valid:
                return result
        return Decision.allow()

    if isinstance(query, Or):
        reasons: list[str] = []
        for operand in query.operands:
            result = _evaluate(operand, matches, verbose)
            if result.valid:
                return result
            if verbose and result.message is not None:
                reasons.append(result.message)
        return Decision.deny(NO_ROLE_MATCHED, reasons)

    raise SchemaError(SchemaErrorCode.UNREACHABLE, "reached end of evaluate and no match", query)


def evaluate(
    query: Any,
    grants: Iterable[str],
    *,
    wildcard: WildcardMode = WildcardMode.LITERAL,
    verbose: bool = False,
    max_depth: int = MAX_QUERY_DEPTH,
) -> Decision:
    """Decide whether the grants satisfy the query.

    The query is always run through ``validate_query`` first, so a malformed
    query is never partially evaluated. ``And`` stops at the first denied
    operand and returns its decision; ``Or`` stops at the first allowed one.

    Args:
        query: A JSON-decoded query payload or a ``Query``.
        grants: The caller's granted permission and role strings.
        wildcard: How grants are compared with leaves.
        verbose: Collect each branch message of a denied ``Or`` in ``reasons``.
        max_depth: Maximum nesting of ``and``/``or`` operators.

    Returns:
        ``Decision(valid=True)`` or ``Decision(valid=False, message=...)``.

    Raises:
        TypeError: If ``grants`` is a single string rather than a collection.
        SchemaError: If the query is structurally invalid.
    """
    check_grants(grants)

    try:
        validated = validate_query(query, max_depth=max_depth)
    except SchemaError as e:
        logger.debug("Rejected permission query (%s at %s): %s", e.code.value, e.path, e.message)
        raise

    if wildcard == WildcardMode.EXPAND:
        matches = _expanding_matcher(grants)
    else:
        matches = _literal_matcher(grants)

    decision = _evaluate(validated, matches, verbose)
    logger.debug("Permission query %s evaluated to %s", validated, decision.valid)
    return decision
