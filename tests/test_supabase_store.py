from __future__ import annotations

import json

import httpx
import pytest

from stall_api.errors import StoreError, UniqueViolation
from stall_api.supabase_store import SupabaseRecordStore

BASE = "https://proj.supabase.co"


def _store(handler) -> tuple[SupabaseRecordStore, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SupabaseRecordStore(base_url=BASE, api_key="service-key", client=client), client


@pytest.mark.asyncio
async def test_select_builds_postgrest_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["params"] = list(request.url.params.multi_items())
        seen["apikey"] = request.headers["apikey"]
        seen["auth"] = request.headers["authorization"]
        return httpx.Response(200, json=[{"id": 7, "stall_slug": "s"}])

    store, client = _store(handler)
    async with client:
        rows = await store.select(
            "stall_submissions",
            eq={"owner_email": "a@x.com"},
            order_by="created_at",
            descending=True,
            limit=1,
        )

    assert rows == [{"id": 7, "stall_slug": "s"}]
    assert seen["method"] == "GET"
    assert seen["path"] == "/rest/v1/stall_submissions"
    assert seen["params"] == [
        ("select", "*"),
        ("owner_email", "eq.a@x.com"),
        ("order", "created_at.desc"),
        ("limit", "1"),
    ]
    assert seen["apikey"] == "service-key"
    assert seen["auth"] == "Bearer service-key"


@pytest.mark.asyncio
async def test_insert_asks_for_representation():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.headers["prefer"] == "return=representation"
        body = json.loads(request.content.decode("utf-8"))
        return httpx.Response(201, json=[{**body, "id": 1, "created_at": "2024-01-01T00:00:00Z"}])

    store, client = _store(handler)
    async with client:
        row = await store.insert("stall_submissions", {"owner_email": "a@x.com", "stall_slug": "s", "payload": {}})
    assert row["id"] == 1
    assert row["stall_slug"] == "s"


@pytest.mark.asyncio
async def test_update_filters_and_returns_rows():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PATCH"
        assert request.url.params["id"] == "eq.5"
        return httpx.Response(200, json=[{"id": 5, "stall_slug": "new"}])

    store, client = _store(handler)
    async with client:
        rows = await store.update("stall_submissions", {"stall_slug": "new"}, eq={"id": 5})
    assert rows == [{"id": 5, "stall_slug": "new"}]


@pytest.mark.asyncio
async def test_unique_violation_is_mapped():
    def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
        return httpx.Response(
            409,
            json={"code": "23505", "message": 'duplicate key value violates unique constraint "stall_slug_key"'},
        )

    store, client = _store(handler)
    async with client:
        with pytest.raises(UniqueViolation) as exc:
            await store.insert("stall_submissions", {"stall_slug": "s"})
    assert "duplicate key" in exc.value.message


@pytest.mark.asyncio
async def test_server_error_becomes_store_error():
    def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
        return httpx.Response(500, json={"code": "XX000", "message": "boom"})

    store, client = _store(handler)
    async with client:
        with pytest.raises(StoreError) as exc:
            await store.select("allowed_owners", eq={"email": "a@x.com"}, limit=1)
    assert not isinstance(exc.value, UniqueViolation)
    assert exc.value.message == "boom"
    assert exc.value.code == "XX000"


@pytest.mark.asyncio
async def test_transport_error_becomes_store_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    store, client = _store(handler)
    async with client:
        with pytest.raises(StoreError):
            await store.select("allowed_owners", eq={"email": "a@x.com"})


@pytest.mark.asyncio
@pytest.mark.parametrize("content_range,expected", [("0-2/3", 3), ("*/0", 0), (None, 0)])
async def test_delete_reads_exact_count(content_range, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "DELETE"
        assert "count=exact" in request.headers["prefer"]
        assert request.url.params["owner_email"] == "eq.a@x.com"
        headers = {"Content-Range": content_range} if content_range else {}
        return httpx.Response(204, headers=headers)

    store, client = _store(handler)
    async with client:
        assert await store.delete("stall_submissions", eq={"owner_email": "a@x.com"}) == expected


@pytest.mark.asyncio
async def test_delete_without_filter_is_refused():
    store = SupabaseRecordStore(base_url=BASE, api_key="k")
    with pytest.raises(StoreError):
        await store.delete("stall_submissions", eq={})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body,column",
    [
        (
            {
                "code": "23505",
                "details": "Key (owner_email)=(a@x.com) already exists.",
                "message": 'duplicate key value violates unique constraint "stall_submissions_owner_email_key"',
            },
            "owner_email",
        ),
        (
            {"code": "23505", "message": 'duplicate key value violates unique constraint "stall_submissions_stall_slug_key"'},
            "stall_submissions_stall_slug",
        ),
        ({"code": "23505", "message": "duplicate key"}, None),
    ],
)
async def test_unique_violation_names_the_column(body, column):
    def handler(request: httpx.Request) -> httpx.Response:  # noqa: ARG001
        return httpx.Response(409, json=body)

    store, client = _store(handler)
    async with client:
        with pytest.raises(UniqueViolation) as exc:
            await store.insert("stall_submissions", {"stall_slug": "s"})
    assert exc.value.column == column
    assert exc.value.on_column("stall_slug") is (column == "stall_submissions_stall_slug")
