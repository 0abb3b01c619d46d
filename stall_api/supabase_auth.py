from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from stall_api.errors import IdentityProviderError
from stall_api.identity import Principal, Session, principal_from_claims

logger = logging.getLogger("stall_api.identity.supabase")


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


class SupabaseIdentityProvider:
    """Supabase Auth (GoTrue) client.

    - ``get_principal``: GET /auth/v1/user with the caller's access token.
    - ``exchange_code_for_session``: POST /auth/v1/token?grant_type=pkce.
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._auth_url = base_url.rstrip("/") + "/auth/v1"
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._client = client

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = self._auth_url + path
        try:
            if self._client is not None:
                return await self._client.request(method, url, timeout=self._timeout, **kwargs)
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise IdentityProviderError(f"Auth request failed: {e.__class__.__name__}") from e

    async def get_principal(self, token: str) -> Optional[Principal]:
        if not token:
            return None
        resp = await self._send(
            "GET",
            "/user",
            headers={"apikey": self._api_key, "Authorization": f"Bearer {token}"},
        )
        if resp.status_code in (401, 403, 404):
            logger.info("Supabase rejected access token (HTTP %s)", resp.status_code)
            return None
        if resp.status_code >= 400:
            raise IdentityProviderError(_error_message(resp))

        try:
            user: Dict[str, Any] = resp.json()
        except ValueError as e:
            raise IdentityProviderError("Auth server returned invalid JSON") from e
        if not isinstance(user, dict) or not user.get("id"):
            return None
        return principal_from_claims(user)

    async def exchange_code_for_session(self, code: str, *, code_verifier: str | None = None) -> Session:
        resp = await self._send(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            headers={"apikey": self._api_key},
            json={"auth_code": code, "code_verifier": code_verifier or ""},
        )
        if resp.status_code >= 400:
            raise IdentityProviderError(_error_message(resp))

        try:
            body = resp.json()
        except ValueError as e:
            raise IdentityProviderError("Auth server returned invalid JSON") from e
        access = body.get("access_token") if isinstance(body, dict) else None
        if not access:
            raise IdentityProviderError("Auth server returned no session")
        return Session(
            access_token=access,
            refresh_token=body.get("refresh_token"),
            expires_in=body.get("expires_in"),
        )
