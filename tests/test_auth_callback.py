from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from stall_api import deps
from stall_api.errors import IdentityProviderError
from stall_api.identity import Session
from stall_api.main import app
from stall_api.settings import Settings


class _CodeExchanger:
    def __init__(self):
        self.seen: list[tuple[str, str | None]] = []

    async def get_principal(self, token):  # noqa: ARG002
        return None

    async def exchange_code_for_session(self, code, *, code_verifier=None):
        self.seen.append((code, code_verifier))
        if code == "bad":
            raise IdentityProviderError("Code expired")
        return Session(access_token="at-1", refresh_token="rt-1", expires_in=3600)


@pytest.fixture
def exchanger():
    ex = _CodeExchanger()
    app.dependency_overrides[deps.get_identity_provider_factory] = lambda: (lambda: ex)
    app.dependency_overrides[deps.get_settings_dep] = lambda: Settings(AUTH_CODE_VERIFIER_COOKIE="pkce-verifier")
    try:
        yield ex
    finally:
        app.dependency_overrides.clear()


def test_callback_without_code_redirects_to_default(exchanger):
    client = TestClient(app)
    r = client.get("/auth/callback", follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/owner/stall"
    assert exchanger.seen == []


def test_callback_exchanges_code_and_sets_session_cookies(exchanger):
    client = TestClient(app)
    r = client.get(
        "/auth/callback",
        params={"code": "good", "next": "/owner/dashboard"},
        headers={"Cookie": "pkce-verifier=verifier-1"},
        follow_redirects=False,
    )
    assert r.status_code == 307
    assert r.headers["location"] == "/owner/dashboard"
    assert exchanger.seen == [("good", "verifier-1")]
    cookies = r.headers.get_list("set-cookie")
    assert any(c.startswith("sb-access-token=at-1") and "HttpOnly" in c for c in cookies)
    assert any(c.startswith("sb-refresh-token=rt-1") for c in cookies)


def test_callback_failure_redirects_to_login_with_error(exchanger):
    client = TestClient(app)
    r = client.get("/auth/callback", params={"code": "bad"}, follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/login?error=Code+expired"


@pytest.mark.parametrize("next_path", ["https://evil.example.com/", "//evil.example.com", "owner"])
def test_callback_ignores_offsite_next(exchanger, next_path):
    client = TestClient(app)
    r = client.get("/auth/callback", params={"next": next_path}, follow_redirects=False)
    assert r.headers["location"] == "/owner/stall"


@pytest.fixture
def unconfigured():
    app.dependency_overrides[deps.get_settings_dep] = lambda: Settings(AUTH_PROVIDER="supabase", SUPABASE_URL="")
    try:
        yield
    finally:
        app.dependency_overrides.clear()


def test_callback_without_code_redirects_even_when_auth_is_unconfigured(unconfigured):
    client = TestClient(app)
    r = client.get("/auth/callback", params={"next": "/owner/dashboard"}, follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/owner/dashboard"


def test_callback_with_code_and_unconfigured_auth_redirects_to_login(unconfigured):
    client = TestClient(app)
    r = client.get("/auth/callback", params={"code": "x"}, follow_redirects=False)
    assert r.status_code == 307
    assert r.headers["location"] == "/login?error=Server+is+not+configured"
