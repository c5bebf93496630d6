"""Identity provider client (Supabase GoTrue REST API).

Session issuance, password checks and token validation all happen upstream;
this client only forwards calls and reports failures as `IdentityError`.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class Session:
    access_token: str
    refresh_token: str
    expires_in: int
    user: dict[str, Any] | None = None


class IdentityClient:
    def __init__(self, base_url: str, api_key: str, session: aiohttp.ClientSession):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._session = session

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {access_token or self.api_key}",
        }

    async def _request(self, method: str, path: str, access_token: str | None = None, **kwargs) -> Any:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            async with self._session.request(method, url, headers=self._headers(access_token), **kwargs) as resp:
                status = resp.status
                body = await resp.read()
        except asyncio.TimeoutError as e:
            raise IdentityError(f"Identity provider timed out: {method} {url}") from e
        except aiohttp.ClientError as e:
            raise IdentityError(str(e) or type(e).__name__) from e

        if status >= 400:
            raise IdentityError(_error_message(body, status), status)
        return json.loads(body) if body else None

    async def sign_in(self, email: str, password: str) -> Session:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        logger.info("Signed in user %s", (data.get("user") or {}).get("id"))
        return Session(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token", ""),
            expires_in=int(data.get("expires_in", 0)),
            user=data.get("user"),
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._request("GET", "/user", access_token=access_token)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)


def _error_message(body: bytes, status: int) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return body.decode("utf-8", errors="replace")[:500] or f"HTTP {status}"
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            if data.get(key):
                return str(data[key])
    return str(data)
