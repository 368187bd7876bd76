from typing import Any

from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder

from fastapi_permquery.errors import SchemaError
from fastapi_permquery.query import And, Leaf, Or, Query


class Forbidden(HTTPException):
    """403 Forbidden - the grants do not satisfy the permission query."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status_code=403, detail=detail)


class InvalidPermissionQuery(HTTPException):
    """400 Bad Request - the permission query itself is malformed."""

    def __init__(self, error: SchemaError) -> None:
        self.error = error
        super().__init__(
            status_code=400,
            detail={
                "code": error.code.value,
                "message": error.message,
                "path": list(error.path),
                "value": _encode_value(error.value),
            },
        )


def _encode_value(value: Any) -> Any:
    # Unknown query nodes and values jsonable_encoder rejects fall back to repr.
    if isinstance(value, Leaf):
        return _encode_value(value.value)
    if isinstance(value, (And, Or)):
        return {value.operator: [_encode_value(operand) for operand in value.operands]}
    if isinstance(value, Query):
        return repr(value)
    try:
        return jsonable_encoder(value)
    except (TypeError, ValueError):
        return repr(value)
