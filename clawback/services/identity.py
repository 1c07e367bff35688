"""Hosted identity provider client.

We never verify passwords or mint sessions ourselves: the browser holds a
Supabase access token, and `IdentityClient.get_user(token)` asks the provider
(``GET {SUPABASE_URL}/auth/v1/user``) who that token belongs to.

Outcomes:
* valid token -> `AuthUser`
* rejected token (401/403) -> None
* provider unreachable / 5xx / malformed body -> `IdentityServiceError`
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from clawback.config import Settings
from clawback.services.errors import ConfigurationError, IdentityServiceError
from clawback.utils import get_logger

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


class IdentityClient:
    def __init__(self, settings: Settings):
        self.base_url = settings.supabase_url
        self.anon_key = settings.supabase_anon_key
        self.timeout_seconds = settings.identity_timeout_seconds

    def _ensure_configured(self) -> None:
        missing = [name for name, value in (("supabase_url", self.base_url), ("supabase_anon_key", self.anon_key)) if not value]
        if missing:
            raise ConfigurationError(missing)

    async def get_user(self, access_token: str) -> AuthUser | None:
        self._ensure_configured()
        url = f"{self.base_url}/auth/v1/user"
        headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token}",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url, headers=headers) as response:
                    if response.status in (401, 403):
                        logger.info("Identity provider rejected access token", status=response.status)
                        return None
                    if response.status != 200:
                        body = await response.text()
                        logger.error(
                            "Identity provider returned unexpected status",
                            status=response.status,
                            body=body[:200],
                        )
                        raise IdentityServiceError(f"Identity provider returned HTTP {response.status}")
                    payload: dict[str, Any] = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Identity provider request failed", error=str(e))
            raise IdentityServiceError(f"Identity provider unreachable: {e}") from e

        user_id = payload.get("id") if isinstance(payload, dict) else None
        if not user_id:
            logger.warning("Identity provider response missing user id")
            return None
        return AuthUser(id=str(user_id), email=payload.get("email"))


__all__ = ["AuthUser", "IdentityClient"]
