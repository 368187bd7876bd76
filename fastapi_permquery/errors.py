from collections.abc import Sequence
from enum import StrEnum
from typing import Any


class SchemaErrorCode(StrEnum):
    WRONG_TYPE = "wrong_type"
    MISSING_OPERATOR = "missing_operator"
    CONFLICTING_OPERATORS = "conflicting_operators"
    UNEXPECTED_KEY = "unexpected_key"
    OPERANDS_NOT_LIST = "operands_not_list"
    EMPTY_OPERANDS = "empty_operands"
    TOO_DEEP = "too_deep"
    TOO_LONG = "too_long"
    SYNTAX_ERROR = "syntax_error"
    UNREACHABLE = "unreachable"


class PermissionErrorCode(StrEnum):
    NOT_A_STRING = "not_a_string"
    WRONG_SEGMENT_COUNT = "wrong_segment_count"
    UNKNOWN_RESOURCE = "unknown_resource"
    BAD_ID_FORMAT = "bad_id_format"
    UNKNOWN_ACTION = "unknown_action"


class SchemaError(Exception):
    """A permission query does not have a valid shape.

    This is a caller-input defect, distinct from a denied authorization.

    Attributes:
        code: Machine-readable reason.
        message: Human-readable description.
        value: The offending input, verbatim.
        path: Location of the offending node, e.g. ``("and", 1, "or", 0)``.
        position: Character offset for textual queries, otherwise None.
    """

    def __init__(
        self,
        code: SchemaErrorCode,
        message: str,
        value: Any = None,
        path: Sequence[str | int] = (),
        position: int | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.value = value
        self.path = tuple(path)
        self.position = position

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.code.value!r}, {self.message!r}, path={self.path!r})"


class InvalidPermission(ValueError):
    def __init__(self, value: Any, code: PermissionErrorCode) -> None:
        super().__init__(f"Invalid permission {value!r}: {code.value}")
        self.value = value
        self.code = code
