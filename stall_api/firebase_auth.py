from __future__ import annotations

import asyncio
import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional

from stall_api.errors import IdentityProviderError
from stall_api.identity import Principal, Session, principal_from_claims

logger = logging.getLogger("stall_api.identity.firebase")


def _raw_cred_json() -> Optional[str]:
    raw = (os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON") or "").strip()
    if raw:
        return raw

    candidates = [(os.getenv("FIREBASE_SERVICE_ACCOUNT_FILE") or "").strip()]
    candidates.append(os.path.join(os.getcwd(), "firebase-service-account.json"))
    for p in candidates:
        if p and os.path.exists(p):
            try:
                with open(p, "r", encoding="utf-8") as f:
                    return f.read()
            except OSError:
                logger.warning("Could not read Firebase service account file %s", p)
                return None
    return None


def cred_source() -> str:
    """Where credentials would be loaded from, without revealing them."""
    if (os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON") or "").strip():
        return "env:FIREBASE_SERVICE_ACCOUNT_JSON"
    p = (os.getenv("FIREBASE_SERVICE_ACCOUNT_FILE") or "").strip()
    if p:
        return f"env:FIREBASE_SERVICE_ACCOUNT_FILE({p})"
    default_path = os.path.join(os.getcwd(), "firebase-service-account.json")
    if os.path.exists(default_path):
        return f"file:{default_path}"
    return "missing"


def _looks_like_service_account(info: dict) -> bool:
    needed = {"type", "project_id", "private_key", "client_email"}
    return needed.issubset(set(info.keys()))


def _format_firebase_exception(e: Exception) -> str:
    code = getattr(e, "code", None)
    msg = getattr(e, "message", None)
    parts = [e.__class__.__name__]
    if code:
        parts.append(f"code={code}")
    parts.append(f"message={msg}" if msg else f"detail={e}")
    return " ".join(parts)


@lru_cache(maxsize=1)
def init_admin() -> bool:
    """Initialize firebase_admin once. Returns True when token verification is available."""
    import firebase_admin
    from firebase_admin import credentials
    from firebase_admin import exceptions as firebase_exceptions

    if firebase_admin._apps:  # type: ignore[attr-defined]
        return True

    raw = _raw_cred_json()
    if not raw:
        logger.warning("Firebase Admin not configured (no service account). All tokens will be rejected.")
        return False

    try:
        info = json.loads(raw)
    except ValueError:
        logger.warning("Firebase service account JSON is not valid JSON (source=%s)", cred_source())
        return False
    if not isinstance(info, dict) or not _looks_like_service_account(info):
        logger.warning(
            "Firebase service account JSON doesn't look like a service account key (source=%s)", cred_source()
        )
        return False

    try:
        firebase_admin.initialize_app(credentials.Certificate(info))
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.warning("Firebase Admin initialization failed (%s, source=%s)", _format_firebase_exception(e), cred_source())
        return False
    logger.info("Firebase Admin initialized (project_id=%s, source=%s)", info.get("project_id"), cred_source())
    return True


def verify_firebase_id_token(id_token: str) -> Optional[Dict[str, Any]]:
    """Verify a Firebase ID token.

    Returns the decoded token dict (contains uid, email, etc) or None.
    """
    if not id_token or not init_admin():
        return None

    from firebase_admin import auth

    try:
        return auth.verify_id_token(id_token)
    except (ValueError, auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError, auth.UserDisabledError) as e:
        logger.info("Firebase token verification failed (%s)", _format_firebase_exception(e))
        return None
    except auth.CertificateFetchError as e:
        raise IdentityProviderError(_format_firebase_exception(e)) from e


class FirebaseIdentityProvider:
    """Identity provider backed by firebase_admin.

    Token verification is synchronous in firebase_admin, so it runs in a worker thread.
    """

    async def get_principal(self, token: str) -> Optional[Principal]:
        claims = await asyncio.to_thread(verify_firebase_id_token, token)
        if not claims:
            return None
        return principal_from_claims(claims)

    async def exchange_code_for_session(self, code: str, *, code_verifier: str | None = None) -> Session:
        raise IdentityProviderError("Code exchange is not supported by the Firebase provider")
