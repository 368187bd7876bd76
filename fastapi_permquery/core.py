from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from fastapi import FastAPI

from fastapi_permquery.dependencies import _grants_dependency_placeholder
from fastapi_permquery.evaluator import Decision, WildcardMode, evaluate
from fastapi_permquery.query import MAX_QUERY_DEPTH


class PermissionAuthz:
    """Permission query configuration for a FastAPI application.

    Args:
        app: The FastAPI application instance.
        grants_dependency: Optional FastAPI dependency that returns the caller's
            granted permission and role strings. When omitted, protected endpoints
            read the grants from ``request.state.grants``.
        wildcard: How granted strings are compared with required permissions.
        verbose: Include every branch message of a denied ``or`` in the decision.
        max_query_depth: Maximum nesting of ``and``/``or`` operators in a query.
    """

    def __init__(
        self,
        app: FastAPI,
        grants_dependency: Callable[..., Iterable[str]] | Callable[..., Awaitable[Iterable[str]]] | None = None,
        wildcard: WildcardMode = WildcardMode.LITERAL,
        verbose: bool = False,
        max_query_depth: int = MAX_QUERY_DEPTH,
    ) -> None:
        self.app = app
        self.grants_dependency = grants_dependency
        self.wildcard = WildcardMode(wildcard)
        self.verbose = verbose
        self.max_query_depth = max_query_depth

        # Attach to app state for access from dependencies
        app.state.permission_authz = self

        if grants_dependency is not None:
            app.dependency_overrides[_grants_dependency_placeholder] = grants_dependency

    def evaluate(self, query: Any, grants: Iterable[str]) -> Decision:
        """Evaluate a query with this configuration.

        Raises:
            SchemaError: If the query is structurally invalid.
        """
        return evaluate(
            query,
            grants,
            wildcard=self.wildcard,
            verbose=self.verbose,
            max_depth=self.max_query_depth,
        )
