from __future__ import annotations

from functools import lru_cache
from typing import Callable

from fastapi import Depends, Header

from stall_api.allowlist import AllowlistGate
from stall_api.errors import StallApiError
from stall_api.firebase_auth import FirebaseIdentityProvider
from stall_api.identity import IdentityProvider, verify_identity
from stall_api.record_store import InMemoryRecordStore, RecordStore
from stall_api.settings import Settings, get_settings
from stall_api.submissions import SubmissionStore
from stall_api.supabase_auth import SupabaseIdentityProvider
from stall_api.supabase_store import SupabaseRecordStore


def get_settings_dep() -> Settings:
    """FastAPI dependency for settings.

    Delegates to stall_api.settings.get_settings (canonical constructor).
    """
    return get_settings()


class ConfigurationError(StallApiError):
    status_code = 500
    default_message = "Server is not configured"


def _require_supabase(s: Settings, key: str, key_env: str) -> None:
    missing = [name for name, value in (("SUPABASE_URL", s.supabase_url), (key_env, key)) if not value]
    if missing:
        raise ConfigurationError(details="missing: " + ", ".join(missing))


def get_identity_provider(settings: Settings = Depends(get_settings_dep)) -> IdentityProvider:
    if settings.auth_provider == "firebase":
        return FirebaseIdentityProvider()
    if settings.auth_provider != "supabase":
        raise ConfigurationError(details=f"unknown AUTH_PROVIDER {settings.auth_provider!r}")
    _require_supabase(settings, settings.supabase_anon_key, "SUPABASE_ANON_KEY")
    return SupabaseIdentityProvider(
        base_url=settings.supabase_url,
        api_key=settings.supabase_anon_key,
        timeout_seconds=settings.http_timeout_seconds,
    )


def get_identity_provider_factory(settings: Settings = Depends(get_settings_dep)) -> Callable[[], IdentityProvider]:
    """Deferred provider construction for routes that only sometimes need one."""
    return lambda: get_identity_provider(settings)


# The in-memory backend must outlive a single request, so it is the only cached piece.
@lru_cache(maxsize=4)
def _memory_store(submissions_table: str, owners_table: str, clubs_table: str, owners: tuple, clubs: tuple) -> InMemoryRecordStore:
    store = InMemoryRecordStore(unique={submissions_table: ("stall_slug",)})
    store.seed(owners_table, [{"email": e} for e in owners])
    store.seed(clubs_table, [{"email": e} for e in clubs])
    return store


def get_record_store(settings: Settings = Depends(get_settings_dep)) -> RecordStore:
    if settings.store_backend == "memory":
        return _memory_store(
            settings.submissions_table,
            settings.owners_table,
            settings.clubs_table,
            tuple(settings.owner_seed),
            tuple(settings.club_seed),
        )
    if settings.store_backend != "supabase":
        raise ConfigurationError(details=f"unknown STORE_BACKEND {settings.store_backend!r}")
    _require_supabase(settings, settings.supabase_service_role_key, "SUPABASE_SERVICE_ROLE_KEY")
    return SupabaseRecordStore(
        base_url=settings.supabase_url,
        api_key=settings.supabase_service_role_key,
        timeout_seconds=settings.http_timeout_seconds,
    )


def get_submission_store(
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings_dep),
) -> SubmissionStore:
    return SubmissionStore(
        store,
        table=settings.submissions_table,
        slug_conflict_retries=settings.slug_conflict_retries,
    )


async def get_owner_email(
    authorization: str | None = Header(default=None),
    provider: IdentityProvider = Depends(get_identity_provider),
    store: RecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings_dep),
) -> str:
    """Verified, allowlisted email of the caller. Every stall route depends on this."""
    email = await verify_identity(authorization, provider)
    gate = AllowlistGate(store, owners_table=settings.owners_table, clubs_table=settings.clubs_table)
    await gate.check(email)
    return email
