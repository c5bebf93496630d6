"""Tests for the identity provider client."""

import aiohttp
import pytest
from aiohttp import web

from userfiles.services.identity import IdentityClient, IdentityError


@pytest.fixture
def identity_client(fake_upstream):
    async def build(handler) -> IdentityClient:
        base_url, session = await fake_upstream(handler)
        return IdentityClient(base_url, "anon-key", session)
    return build


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_in_password_grant(identity_client):
    seen = {}

    async def handler(request: web.Request) -> web.Response:
        seen["path"] = request.path
        seen["grant"] = request.query["grant_type"]
        seen["apikey"] = request.headers["apikey"]
        seen["body"] = await request.json()
        return web.json_response({
            "access_token": "access-123",
            "refresh_token": "refresh-456",
            "expires_in": 3600,
            "user": {"id": "u1"},
        })

    client = await identity_client(handler)
    session = await client.sign_in("jane@example.com", "pw")

    assert seen == {
        "path": "/auth/v1/token",
        "grant": "password",
        "apikey": "anon-key",
        "body": {"email": "jane@example.com", "password": "pw"},
    }
    assert session.access_token == "access-123"
    assert session.refresh_token == "refresh-456"
    assert session.user == {"id": "u1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_in_rejected(identity_client):
    async def handler(request: web.Request) -> web.Response:
        return web.json_response(
            {"error": "invalid_grant", "error_description": "Invalid login credentials"},
            status=400,
        )

    client = await identity_client(handler)
    with pytest.raises(IdentityError) as exc:
        await client.sign_in("jane@example.com", "wrong")

    assert exc.value.message == "Invalid login credentials"
    assert exc.value.status_code == 400


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_user_uses_session_token(identity_client):
    seen = {}

    async def handler(request: web.Request) -> web.Response:
        seen["path"] = request.path
        seen["auth"] = request.headers["Authorization"]
        return web.json_response({"id": "u1", "email": "jane@example.com"})

    client = await identity_client(handler)
    user = await client.get_user("access-123")

    assert user == {"id": "u1", "email": "jane@example.com"}
    assert seen == {"path": "/auth/v1/user", "auth": "Bearer access-123"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_sign_out(identity_client):
    calls = []

    async def handler(request: web.Request) -> web.Response:
        calls.append((request.method, request.path, request.headers["Authorization"]))
        return web.Response(status=204)

    client = await identity_client(handler)
    await client.sign_out("access-123")

    assert calls == [("POST", "/auth/v1/logout", "Bearer access-123")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unreachable_provider():
    async with aiohttp.ClientSession() as session:
        client = IdentityClient("http://127.0.0.1:1", "anon-key", session)
        with pytest.raises(IdentityError) as exc:
            await client.get_user("access-123")

    assert exc.value.status_code is None
