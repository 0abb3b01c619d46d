from __future__ import annotations

import logging
import urllib.parse
from typing import Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from stall_api.deps import ConfigurationError, get_identity_provider_factory, get_settings_dep
from stall_api.errors import IdentityProviderError
from stall_api.identity import IdentityProvider
from stall_api.settings import Settings

logger = logging.getLogger("stall_api.auth")

router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"


def _safe_next(next_path: str | None, default: str) -> str:
    # Same-origin paths only; "//host" and absolute URLs would leave the site.
    p = (next_path or "").strip()
    if not p.startswith("/") or p.startswith("//") or "\\" in p:
        return default
    return p


@router.get("/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    next: str | None = None,  # noqa: A002
    settings: Settings = Depends(get_settings_dep),
    provider_factory: Callable[[], IdentityProvider] = Depends(get_identity_provider_factory),
) -> RedirectResponse:
    """Login redirect target: trade ``code`` for a session, then send the browser on."""
    target = _safe_next(next, settings.default_next_path)

    if not code:
        return RedirectResponse(target)

    verifier = None
    if settings.auth_code_verifier_cookie:
        verifier = request.cookies.get(settings.auth_code_verifier_cookie)

    try:
        provider = provider_factory()
        session = await provider.exchange_code_for_session(code, code_verifier=verifier)
    except ConfigurationError as e:
        logger.warning("Code exchange unavailable: %s (%s)", e.message, e.details)
        query = urllib.parse.urlencode({"error": e.message})
        return RedirectResponse(f"{settings.login_path}?{query}")
    except IdentityProviderError as e:
        logger.info("Code exchange failed: %s", e)
        query = urllib.parse.urlencode({"error": str(e)})
        return RedirectResponse(f"{settings.login_path}?{query}")

    resp = RedirectResponse(target)
    secure = request.url.scheme == "https"
    resp.set_cookie(
        ACCESS_COOKIE,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    if session.refresh_token:
        resp.set_cookie(REFRESH_COOKIE, session.refresh_token, httponly=True, secure=secure, samesite="lax")
    if settings.auth_code_verifier_cookie:
        resp.delete_cookie(settings.auth_code_verifier_cookie)
    return resp
