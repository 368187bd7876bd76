"""FastAPI permission queries - boolean AND/OR authorization over granted permissions."""

__version__ = "0.1.0"

from fastapi_permquery.core import PermissionAuthz
from fastapi_permquery.dependencies import (
    Grants,
    authorize,
    create_permission_dependency,
    get_permission_authz,
)
from fastapi_permquery.errors import (
    InvalidPermission,
    PermissionErrorCode,
    SchemaError,
    SchemaErrorCode,
)
from fastapi_permquery.evaluator import Decision, WildcardMode, evaluate
from fastapi_permquery.exceptions import Forbidden, InvalidPermissionQuery
from fastapi_permquery.parser import parse_query
from fastapi_permquery.permissions import (
    ApiAction,
    ApiId,
    Permission,
    RatelimitAction,
    RatelimitNamespaceId,
    Resource,
    implies,
    parse_permission,
    validate_permission,
    validate_resource_id,
)
from fastapi_permquery.query import And, Leaf, Or, Query, validate_query

__all__ = [
    "PermissionAuthz",
    "Grants",
    "authorize",
    "create_permission_dependency",
    "get_permission_authz",
    "Decision",
    "WildcardMode",
    "evaluate",
    "Query",
    "Leaf",
    "And",
    "Or",
    "validate_query",
    "parse_query",
    "Resource",
    "ApiAction",
    "RatelimitAction",
    "ApiId",
    "RatelimitNamespaceId",
    "Permission",
    "implies",
    "parse_permission",
    "validate_permission",
    "validate_resource_id",
    "SchemaError",
    "SchemaErrorCode",
    "InvalidPermission",
    "PermissionErrorCode",
    "Forbidden",
    "InvalidPermissionQuery",
]
