from __future__ import annotations

import asyncio

import pytest

from stall_api.allowlist import AllowlistGate
from stall_api.errors import AllowlistQueryFailure, NotAuthorized, StoreError
from stall_api.record_store import InMemoryRecordStore


def _store() -> InMemoryRecordStore:
    s = InMemoryRecordStore()
    s.seed("allowed_owners", [{"email": "owner@x.com"}, {"email": "both@x.com"}])
    s.seed("allowed_clubs", [{"email": "club@x.com"}, {"email": "both@x.com"}])
    return s


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,roles",
    [("owner@x.com", ["owner"]), ("club@x.com", ["club"]), ("both@x.com", ["owner", "club"])],
)
async def test_listed_emails_pass(email, roles):
    assert await AllowlistGate(_store()).check(email) == roles


@pytest.mark.asyncio
async def test_unlisted_email_is_not_authorized():
    with pytest.raises(NotAuthorized) as exc:
        await AllowlistGate(_store()).check("stranger@x.com")
    assert exc.value.status_code == 403


class _SlowAndBrokenStore:
    """Owners lookup fails, clubs lookup would succeed; both must have started."""

    def __init__(self):
        self.started: list[str] = []

    async def select(self, table, *, eq, **kwargs):  # noqa: ARG002
        self.started.append(table)
        await asyncio.sleep(0)
        if table == "allowed_owners":
            raise StoreError("relation does not exist")
        return [{"email": eq["email"]}]


@pytest.mark.asyncio
async def test_lookup_failure_is_infrastructure_error_even_if_other_list_matches():
    store = _SlowAndBrokenStore()
    with pytest.raises(AllowlistQueryFailure) as exc:
        await AllowlistGate(store).check("club@x.com")
    assert exc.value.status_code == 500
    assert exc.value.details == "relation does not exist"
    assert sorted(store.started) == ["allowed_clubs", "allowed_owners"]


@pytest.mark.asyncio
async def test_custom_table_names():
    s = InMemoryRecordStore()
    s.seed("vip_owners", [{"email": "v@x.com"}])
    gate = AllowlistGate(s, owners_table="vip_owners", clubs_table="vip_clubs")
    assert await gate.check("v@x.com") == ["owner"]
