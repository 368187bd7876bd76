import logging
from collections.abc import Callable, Coroutine, Iterable
from typing import TYPE_CHECKING, Annotated, Any

from fastapi import Depends, Request

from fastapi_permquery.errors import SchemaError
from fastapi_permquery.evaluator import Decision, check_grants, evaluate
from fastapi_permquery.exceptions import Forbidden, InvalidPermissionQuery
from fastapi_permquery.query import MAX_QUERY_DEPTH, validate_query

if TYPE_CHECKING:
    from fastapi_permquery.core import PermissionAuthz

logger = logging.getLogger(__name__)


async def _grants_dependency_placeholder(request: Request) -> Any:
    """Placeholder dependency for resolving the caller's grants.

    Replaced at runtime via FastAPI's dependency_overrides when PermissionAuthz
    is initialized with a grants_dependency. Otherwise falls back to reading
    request.state.grants, which must be set by the application's own auth.
    """
    return getattr(request.state, "grants", None)


def get_permission_authz(request: Request) -> "PermissionAuthz":
    """Return the PermissionAuthz attached to the application."""
    authz = getattr(request.app.state, "permission_authz", None)
    if authz is None:
        raise RuntimeError(
            "PermissionAuthz not configured. Make sure to create a PermissionAuthz instance with your app."
        )
    return authz


def Grants(grants: Annotated[Any, Depends(_grants_dependency_placeholder)]) -> list[str]:
    """Resolve the caller's grants for use in endpoints.

    Raises:
        Forbidden: If no grants were resolved for the request.
        TypeError: If the grants dependency returned a single string.
    """
    if grants is None:
        raise Forbidden("Not authenticated")
    check_grants(grants)
    return list(grants)


def authorize(query: Any, grants: Iterable[str], authz: "PermissionAuthz | None" = None) -> Decision:
    """Evaluate a query and map the outcome onto HTTP errors.

    Useful when the query comes from the request itself, e.g. a key
    verification body carrying the permissions it requires.

    Args:
        query: A JSON-decoded query payload or a ``Query``.
        grants: The caller's granted permission and role strings.
        authz: Configuration to evaluate with. Defaults apply when omitted.

    Returns:
        The allowing decision.

    Raises:
        InvalidPermissionQuery: If the query is structurally invalid.
        Forbidden: If the grants do not satisfy the query.
    """
    try:
        decision = authz.evaluate(query, grants) if authz is not None else evaluate(query, grants)
    except SchemaError as e:
        raise InvalidPermissionQuery(e) from e

    if not decision.valid:
        raise Forbidden(decision.message or "Forbidden")
    return decision


def create_permission_dependency(
    query: Any,
    *,
    max_depth: int = MAX_QUERY_DEPTH,
) -> Callable[..., Coroutine[Any, Any, Decision]]:
    """Create a dependency that requires the caller's grants to satisfy ``query``.

    The query is validated immediately, so a malformed requirement fails when
    the endpoint is defined rather than on every request. It is checked again
    against the app's ``max_query_depth`` on each request; a requirement the
    app does not accept is a server misconfiguration, not a client error.

    Args:
        query: A JSON-decoded query payload or a ``Query``.
        max_depth: Maximum nesting of ``and``/``or`` operators.

    Returns:
        An async dependency for use with FastAPI's Depends().

    Raises:
        SchemaError: If the query is structurally invalid.
    """
    validated = validate_query(query, max_depth=max_depth)

    async def permission_dependency(
        request: Request,
        grants: Annotated[Any, Depends(_grants_dependency_placeholder)],
    ) -> Decision:
        authz = get_permission_authz(request)
        try:
            validate_query(validated, max_depth=authz.max_query_depth)
        except SchemaError as e:
            raise RuntimeError(
                f"Permission requirement {validated} exceeds the configured max_query_depth "
                f"of {authz.max_query_depth}"
            ) from e
        if grants is None:
            raise Forbidden("Not authenticated")

        decision = authorize(validated, grants, authz)
        logger.debug("Granted %s %s for query %s", request.method, request.url.path, validated)
        return decision

    return permission_dependency
