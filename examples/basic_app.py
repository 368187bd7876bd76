"""
Basic example demonstrating fastapi-permquery usage.

Run with:
    uvicorn examples.basic_app:app --reload

Then try:
    curl -X POST localhost:18000/apis -H "X-Root-Key: manager-key"
    curl -X POST localhost:18000/keys.verifyKey -H "Content-Type: application/json" \
        -d '{"key": "sk_123", "permissions": "api.*.read_key AND (api.*.update_key OR admin)"}'
"""

from typing import Annotated, Any

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel

from fastapi_permquery import (
    Grants,
    PermissionAuthz,
    SchemaError,
    WildcardMode,
    create_permission_dependency,
    evaluate,
    parse_query,
)
from fastapi_permquery.exceptions import InvalidPermissionQuery


# =============================================================================
# Grants
# =============================================================================
# Fake root key database (root key -> granted permissions)
ROOT_KEYS = {
    "admin-key": ["*"],
    "manager-key": ["api.*.read_api", "api.*.create_api", "api.*.create_key"],
    "ratelimit-key": ["ratelimit.*.limit", "ratelimit.*.read_namespace"],
}

# Fake API key database (key -> granted permissions and roles)
KEYS = {
    "sk_123": ["api.*.read_key", "api.*.update_key"],
    "sk_456": ["api.*.read_key", "admin"],
    "sk_789": ["domain.manager"],
}


async def get_root_key_grants(x_root_key: Annotated[str | None, Header()] = None) -> list[str] | None:
    """Simulate root key lookup via X-Root-Key header."""
    if x_root_key is None:
        return None
    return ROOT_KEYS.get(x_root_key)


# =============================================================================
# Application Setup
# =============================================================================
app = FastAPI(
    title="Permission Query Example",
    description="Example app demonstrating fastapi-permquery",
)

PermissionAuthz(
    app,
    grants_dependency=get_root_key_grants,
    wildcard=WildcardMode.EXPAND,  # root keys with "*" can do everything
)

CanCreateApi = create_permission_dependency({"and": ["api.*.read_api", "api.*.create_api"]})
CanLimit = create_permission_dependency(parse_query("ratelimit.*.limit OR ratelimit.*.create_namespace"))


# =============================================================================
# Routes
# =============================================================================
@app.post("/apis", dependencies=[Depends(CanCreateApi)], tags=["APIs"])
async def create_api() -> dict[str, str]:
    """Create an API. Requires read_api AND create_api."""
    return {"apiId": "api_9fR3kLmN2pQ"}


@app.post("/ratelimits.limit", dependencies=[Depends(CanLimit)], tags=["Ratelimits"])
async def limit() -> dict[str, bool]:
    return {"success": True}


@app.get("/grants", tags=["Debug"])
async def my_grants(grants: Annotated[list[str], Depends(Grants)]) -> list[str]:
    """Show the grants resolved for the presented root key."""
    return grants


class VerifyKeyRequest(BaseModel):
    key: str
    # A JSON query object, or a textual query such as "a AND (b OR c)"
    permissions: Any = None


@app.post("/keys.verifyKey", tags=["Keys"])
async def verify_key(body: VerifyKeyRequest) -> dict[str, Any]:
    """Verify a key and, optionally, that its permissions satisfy a query."""
    grants = KEYS.get(body.key)
    if grants is None:
        raise HTTPException(status_code=404, detail="Key not found")

    if body.permissions is None:
        return {"valid": True}

    # Key permissions are checked literally; only root keys expand wildcards.
    # A denial is a normal verification result, not an HTTP error.
    try:
        query = parse_query(body.permissions) if isinstance(body.permissions, str) else body.permissions
        decision = evaluate(query, grants)
    except SchemaError as e:
        raise InvalidPermissionQuery(e) from e

    if not decision.valid:
        return {"valid": False, "code": "INSUFFICIENT_PERMISSIONS", "message": decision.message}
    return {"valid": True}


# =============================================================================
# Health Check (no auth required)
# =============================================================================
@app.get("/health", tags=["Health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, port=18_000)
