"""
Tests for the authorization policy and role gating of the HTTP surface.
"""

import pytest

from parcelflow.app.core.exceptions import ForbiddenError
from parcelflow.app.core.guards import Capability, authorize, enforce, owner_scope, require_capability
from parcelflow.app.core.identity import CallerContext
from parcelflow.app.models.enums import UserRole

ADMIN = CallerContext(email="admin@test.com", role=UserRole.ADMIN)
RIDER = CallerContext(email="rider@test.com", role=UserRole.RIDER)
USER = CallerContext(email="user@test.com", role=UserRole.USER)


@pytest.mark.parametrize("caller, capability, owner, allowed", [
    (ADMIN, Capability.ADMIN, None, True),
    (RIDER, Capability.ADMIN, None, False),
    (USER, Capability.ADMIN, None, False),
    (RIDER, Capability.RIDER, None, True),
    (ADMIN, Capability.RIDER, None, False),
    (USER, Capability.RIDER, None, False),
    (USER, Capability.OWNER, "user@test.com", True),
    (USER, Capability.OWNER, "USER@test.com", True),
    (USER, Capability.OWNER, "other@test.com", False),
    (USER, Capability.OWNER, None, False),
    (ADMIN, Capability.OWNER, "other@test.com", True),
])
def test_authorize(caller, capability, owner, allowed):
    result = authorize(capability, caller, owner)
    assert result.allowed is allowed
    assert bool(result) is allowed
    if not allowed:
        assert result.reason


def test_enforce_raises_forbidden():
    assert enforce(Capability.OWNER, USER, "user@test.com") is USER
    with pytest.raises(ForbiddenError) as exc_info:
        enforce(Capability.ADMIN, USER)
    assert exc_info.value.status_code == 403


def test_owner_scope():
    assert owner_scope(ADMIN) is None
    assert owner_scope(ADMIN, "someone@test.com") == "someone@test.com"
    assert owner_scope(USER) == "user@test.com"
    assert owner_scope(USER, "user@test.com") == "user@test.com"
    with pytest.raises(ForbiddenError):
        owner_scope(USER, "someone@test.com")


def test_owner_capability_is_not_a_dependency():
    with pytest.raises(ValueError):
        require_capability(Capability.OWNER)


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    response = await client.get("/v1/parcels")
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_AUTH_001"


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    response = await client.get("/v1/parcels", headers={"Authorization": "Bearer forged"})
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("method, path", [
    ("GET", "/v1/users"),
    ("GET", "/v1/riders"),
    ("GET", "/v1/parcels/delivery-stats"),
    ("GET", "/v1/notifications"),
    ("GET", "/v1/admin/dashboard-stats"),
    ("GET", "/v1/admin/average-delivery-duration"),
])
async def test_admin_routes_reject_users(client, sign_in, method, path):
    headers = await sign_in("user@test.com")
    response = await client.request(method, path, headers=headers)
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_PERM_001"


@pytest.mark.asyncio
async def test_rider_routes_reject_admins(client, sign_in):
    headers = await sign_in("admin@test.com", UserRole.ADMIN)

    assert (await client.get("/v1/parcels/rider", headers=headers)).status_code == 403
    assert (await client.get("/v1/riders/delivery-per-day", headers=headers)).status_code == 403


@pytest.mark.asyncio
async def test_role_comes_from_database_not_token(client, sign_in, verifier):
    headers = await sign_in("user@test.com")
    verifier.tokens["token-user@test.com"]["role"] = "admin"

    response = await client.get("/v1/users", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unregistered_identity_is_plain_user(client, sign_in):
    headers = await sign_in("new@test.com", register=False)

    response = await client.get("/v1/parcels", headers=headers)
    assert response.status_code == 200
    assert response.json() == []
    assert (await client.get("/v1/users", headers=headers)).status_code == 403
