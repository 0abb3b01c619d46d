from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

from stall_api.errors import IdentityProviderError, InvalidCredential, MissingCredential, UnverifiedIdentity

logger = logging.getLogger("stall_api.identity")


@dataclass(frozen=True)
class Principal:
    uid: str
    email: Optional[str]


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


class IdentityProvider(Protocol):
    async def get_principal(self, token: str) -> Optional[Principal]:
        """Return the principal behind ``token`` or None when the token is rejected."""
        ...

    async def exchange_code_for_session(self, code: str, *, code_verifier: str | None = None) -> Session:
        """Trade a login callback code for a session. Raises IdentityProviderError."""
        ...


def bearer_token(authorization: str | None) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer ") :].strip()
    return token or None


async def verify_identity(authorization: str | None, provider: IdentityProvider) -> str:
    """Exchange the bearer credential for a verified, lowercased email."""
    token = bearer_token(authorization)
    if not token:
        raise MissingCredential()

    try:
        principal = await provider.get_principal(token)
    except IdentityProviderError as e:
        logger.info("Identity provider rejected token lookup (%s)", e)
        raise InvalidCredential() from e

    if principal is None:
        raise InvalidCredential()

    email = (principal.email or "").strip().lower()
    if not email:
        logger.info("Principal %s has no email", principal.uid)
        raise UnverifiedIdentity()
    return email


def principal_from_claims(claims: Dict[str, Any]) -> Principal:
    uid = claims.get("id") or claims.get("uid") or claims.get("sub") or ""
    email = claims.get("email")
    return Principal(uid=str(uid), email=email if isinstance(email, str) else None)
