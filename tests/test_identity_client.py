import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from clawback.config import Settings
from clawback.services.errors import ConfigurationError, IdentityServiceError
from clawback.services.identity import AuthUser, IdentityClient


def build_identity_app(seen_headers: list):
    async def get_user(request: web.Request) -> web.Response:
        seen_headers.append(dict(request.headers))
        token = request.headers.get("Authorization", "")
        if token == "Bearer good-token":
            return web.json_response({"id": "user-123", "email": "member@example.com"})
        if token == "Bearer no-id":
            return web.json_response({"email": "ghost@example.com"})
        if token == "Bearer explode":
            return web.json_response({"msg": "boom"}, status=503)
        return web.json_response({"msg": "invalid JWT"}, status=401)

    app = web.Application()
    app.router.add_get("/auth/v1/user", get_user)
    return app


def lookup(token: str, seen_headers: list):
    async def _run():
        async with TestServer(build_identity_app(seen_headers)) as server:
            base_url = str(server.make_url("")).rstrip("/")
            client = IdentityClient(Settings(supabase_url=base_url, supabase_anon_key="anon-key"))
            return await client.get_user(token)
    return asyncio.run(_run())


def test_valid_token_resolves_user():
    seen = []
    user = lookup("good-token", seen)
    assert user == AuthUser(id="user-123", email="member@example.com")
    assert seen[0]["apikey"] == "anon-key"
    assert seen[0]["Authorization"] == "Bearer good-token"


def test_rejected_token_returns_none():
    assert lookup("stale-token", []) is None


def test_response_without_id_returns_none():
    assert lookup("no-id", []) is None


def test_provider_error_raises():
    with pytest.raises(IdentityServiceError):
        lookup("explode", [])


def test_unreachable_provider_raises():
    client = IdentityClient(Settings(supabase_url="http://127.0.0.1:9", supabase_anon_key="anon-key", identity_timeout_seconds=2))
    with pytest.raises(IdentityServiceError):
        asyncio.run(client.get_user("good-token"))


def test_missing_configuration_raises():
    client = IdentityClient(Settings(supabase_url="", supabase_anon_key=""))
    with pytest.raises(ConfigurationError) as exc_info:
        asyncio.run(client.get_user("good-token"))
    assert exc_info.value.missing == ["supabase_url", "supabase_anon_key"]
