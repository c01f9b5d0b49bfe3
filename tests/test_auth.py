"""
Registration, login and the current-user endpoints, including the token
parsing rules of the auth dependency.
"""
from datetime import timedelta

import pytest
from httpx import AsyncClient

from conduit.security import create_access_token, decode_token, user_id_from_token


def _auth(token: str, scheme: str = "Bearer") -> dict:
    return {"Authorization": f"{scheme} {token}"}


# ---------------------------------------------------------------------------
# Register
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_register_returns_token(async_client: AsyncClient):
    resp = await async_client.post("/api/users", json={
        "username": "carol",
        "email": "carol@example.com",
        "password": "secret123",
        "name": "Carol",
    })
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "success"
    assert data["message"] == "register successful"

    payload = decode_token(data["result"]["token"])
    assert payload["username"] == "carol"
    assert int(payload["sub"]) > 0
    assert payload["exp"] > payload["iat"]


@pytest.mark.asyncio
async def test_register_duplicate_username_returns_409(async_client: AsyncClient, alice_token: str):
    resp = await async_client.post("/api/users", json={
        "username": "alice",
        "email": "other@example.com",
        "password": "secret123",
    })
    assert resp.status_code == 409
    body = resp.json()
    assert body["status"] == "error"
    assert body["message"] == "Username already exists"
    assert body["error"] == "conflict"


@pytest.mark.asyncio
async def test_register_duplicate_email_returns_409(async_client: AsyncClient, alice_token: str):
    resp = await async_client.post("/api/users", json={
        "username": "alice2",
        "email": "alice@example.com",
        "password": "secret123",
    })
    assert resp.status_code == 409
    assert resp.json()["message"] == "Email already exists"


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"username": "", "email": "x@example.com", "password": "secret123"},
    {"username": "x" * 21, "email": "x@example.com", "password": "secret123"},
    {"username": "shortpw", "email": "x@example.com", "password": "abc"},
    {"username": "badmail", "email": "not-an-email", "password": "secret123"},
    {"username": "nopass", "email": "x@example.com"},
])
async def test_register_validation_errors_return_400(async_client: AsyncClient, payload: dict):
    resp = await async_client.post("/api/users", json=payload)
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert body["errors"]


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_login_returns_token_and_user(async_client: AsyncClient, alice_token: str):
    resp = await async_client.post("/api/login", json={"username": "alice", "password": "secret123"})
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert user_id_from_token(result["token"]) == user_id_from_token(alice_token)

    user = result["user"]
    assert user["username"] == "alice"
    assert user["email"] == "alice@example.com"
    assert "password" not in user
    assert "createdAt" in user


@pytest.mark.asyncio
async def test_login_wrong_password_returns_401(async_client: AsyncClient, alice_token: str):
    resp = await async_client.post("/api/login", json={"username": "alice", "password": "wrong-pw"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_login_unknown_user_returns_401(async_client: AsyncClient):
    """Unknown usernames fail exactly like wrong passwords."""
    resp = await async_client.post("/api/login", json={"username": "nobody", "password": "secret123"})
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid credentials"


# ---------------------------------------------------------------------------
# Token handling
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_current_user_requires_token(async_client: AsyncClient):
    resp = await async_client.get("/api/user")
    assert resp.status_code == 401
    assert resp.json()["message"] == "Not authenticated"
    assert resp.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_current_user_with_bearer_token(async_client: AsyncClient, alice_token: str):
    resp = await async_client.get("/api/user", headers=_auth(alice_token))
    assert resp.status_code == 200
    assert resp.json()["result"]["username"] == "alice"


@pytest.mark.asyncio
async def test_current_user_accepts_token_scheme(async_client: AsyncClient, alice_token: str):
    resp = await async_client.get("/api/user", headers=_auth(alice_token, scheme="Token"))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_unknown_scheme_is_treated_as_missing(async_client: AsyncClient, alice_token: str):
    resp = await async_client.get("/api/user", headers=_auth(alice_token, scheme="Basic"))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Not authenticated"


@pytest.mark.asyncio
async def test_forged_token_returns_401(async_client: AsyncClient):
    resp = await async_client.get("/api/user", headers=_auth("not.a.jwt"))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Could not validate credentials"


@pytest.mark.asyncio
async def test_expired_token_returns_401(async_client: AsyncClient, alice_token: str):
    user_id = user_id_from_token(alice_token)
    expired = create_access_token(user_id, "alice", expires_delta=timedelta(seconds=-10))
    resp = await async_client.get("/api/user", headers=_auth(expired))
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_token_for_deleted_user_returns_401(async_client: AsyncClient):
    ghost = create_access_token(9999, "ghost")
    resp = await async_client.get("/api/user", headers=_auth(ghost))
    assert resp.status_code == 401
    assert resp.json()["message"] == "Could not validate credentials"


@pytest.mark.asyncio
async def test_bad_token_on_optional_route_is_anonymous(async_client: AsyncClient):
    resp = await async_client.get("/api/articles", headers=_auth("garbage"))
    assert resp.status_code == 200


# ---------------------------------------------------------------------------
# Update current user
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_update_profile_fields(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "bio": "I write things",
        "image": "https://example.com/alice.png",
    })
    assert resp.status_code == 200
    result = resp.json()["result"]
    assert result["bio"] == "I write things"
    assert result["image"] == "https://example.com/alice.png"
    assert result["username"] == "alice"


@pytest.mark.asyncio
async def test_update_keeping_own_username_is_allowed(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "username": "alice",
        "email": "alice@example.com",
    })
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_update_to_taken_username_returns_409(
    async_client: AsyncClient, alice_token: str, bob_token: str
):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={"username": "bob"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Username already exists"


@pytest.mark.asyncio
async def test_update_to_taken_email_returns_409(
    async_client: AsyncClient, alice_token: str, bob_token: str
):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={"email": "bob@example.com"})
    assert resp.status_code == 409
    assert resp.json()["message"] == "Email already exists"


@pytest.mark.asyncio
async def test_update_password_requires_confirmation(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={"password": "newpass1"})
    assert resp.status_code == 400
    assert "confirmation" in resp.json()["message"]


@pytest.mark.asyncio
async def test_update_password_mismatch_returns_400(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "password": "newpass1",
        "confirmPassword": "newpass2",
    })
    assert resp.status_code == 400
    assert resp.json()["message"] == "Password and confirmation password do not match"


@pytest.mark.asyncio
async def test_update_password_must_change(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "password": "secret123",
        "confirmPassword": "secret123",
    })
    assert resp.status_code == 400
    assert resp.json()["message"] == "New password must be different from current password"


@pytest.mark.asyncio
async def test_update_password_then_login(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "password": "newpass1",
        "confirmPassword": "newpass1",
    })
    assert resp.status_code == 200

    old = await async_client.post("/api/login", json={"username": "alice", "password": "secret123"})
    assert old.status_code == 401
    new = await async_client.post("/api/login", json={"username": "alice", "password": "newpass1"})
    assert new.status_code == 200


@pytest.mark.asyncio
async def test_update_rejects_non_http_image(async_client: AsyncClient, alice_token: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={
        "image": "javascript:alert(1)",
    })
    assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["username", "email"])
async def test_update_rejects_null_for_required_field(async_client: AsyncClient, alice_token: str, field: str):
    resp = await async_client.put("/api/user", headers=_auth(alice_token), json={field: None})
    assert resp.status_code == 400
    assert resp.json()["message"] == f"{field} cannot be null"

    user = (await async_client.get("/api/user", headers=_auth(alice_token))).json()["result"]
    assert user["username"] == "alice"
    assert user["email"] == "alice@example.com"
