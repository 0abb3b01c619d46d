from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from stall_api.errors import StoreError, UniqueViolation

logger = logging.getLogger("stall_api.store")

Row = Dict[str, Any]

_UNIQUE_VIOLATION = "23505"

# details: Key (stall_slug)=(pizza-place) already exists.
_KEY_DETAIL = re.compile(r"Key \(([^)]+)\)=")
# message: duplicate key value violates unique constraint "stall_submissions_stall_slug_key"
_CONSTRAINT = re.compile(r'unique constraint "([^"]+)"')


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return "eq." + ("true" if value else "false")
    return f"eq.{value}"


def _error_from_response(resp: httpx.Response) -> StoreError:
    """Map a PostgREST error body to StoreError / UniqueViolation."""
    code: Optional[str] = None
    details = ""
    message = f"HTTP {resp.status_code}"
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or None
        details = str(body.get("details") or "")
        msg = body.get("message") or body.get("error") or body.get("msg")
        if msg:
            message = str(msg)
    elif resp.text:
        message = f"HTTP {resp.status_code}: {resp.text[:200]}"

    if code == _UNIQUE_VIOLATION:
        return UniqueViolation(message, column=_violated_column(details, message), code=code)
    return StoreError(message, code=code)


def _violated_column(details: str, message: str) -> Optional[str]:
    m = _KEY_DETAIL.search(details)
    if m:
        cols = [c.strip() for c in m.group(1).split(",")]
        return cols[0] if len(cols) == 1 else None
    # No details: keep the "<table>_<column>" stem of a default "<table>_<column>_key" constraint name.
    m = _CONSTRAINT.search(message)
    if m and m.group(1).endswith("_key"):
        return m.group(1)[: -len("_key")]
    return None


def _count_from_content_range(header: str | None) -> Optional[int]:
    # "0-2/3" or "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[-1].strip()
    if total == "*":
        return None
    try:
        return int(total)
    except ValueError:
        return None


class SupabaseRecordStore:
    """Record store backed by a Supabase project's PostgREST endpoint.

    Uses the service-role key, so row level security does not apply; the
    API is responsible for scoping every query to the verified owner.

    Pass ``client`` to reuse a connection pool (tests inject an
    ``httpx.MockTransport`` this way).
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._client = client

    def _headers(self, *, prefer: str | None = None) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        *,
        params: List[tuple[str, str]],
        json: Any = None,
        prefer: str | None = None,
    ) -> httpx.Response:
        url = f"{self._rest_url}/{table}"
        try:
            if self._client is not None:
                resp = await self._client.request(
                    method, url, params=params, json=json, headers=self._headers(prefer=prefer), timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    resp = await client.request(method, url, params=params, json=json, headers=self._headers(prefer=prefer))
        except httpx.HTTPError as e:
            logger.warning("Record store request failed (%s %s): %s", method, table, e.__class__.__name__)
            raise StoreError(f"Record store request failed: {e.__class__.__name__}") from e

        if resp.status_code >= 400:
            err = _error_from_response(resp)
            logger.warning("Record store rejected %s %s (code=%s): %s", method, table, err.code, err.message)
            raise err
        return resp

    @staticmethod
    def _rows(resp: httpx.Response) -> List[Row]:
        if not resp.content:
            return []
        try:
            data = resp.json()
        except ValueError as e:
            raise StoreError("Record store returned invalid JSON") from e
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StoreError("Record store returned an unexpected payload")
        return data

    async def select(
        self,
        table: str,
        *,
        eq: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        params: List[tuple[str, str]] = [("select", "*")]
        params.extend((k, _filter_value(v)) for k, v in eq.items())
        if order_by:
            params.append(("order", f"{order_by}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        resp = await self._request("GET", table, params=params)
        return self._rows(resp)

    async def insert(self, table: str, values: Row) -> Row:
        resp = await self._request("POST", table, params=[("select", "*")], json=values, prefer="return=representation")
        rows = self._rows(resp)
        if not rows:
            raise StoreError("Insert returned no row")
        return rows[0]

    async def update(self, table: str, values: Row, *, eq: Dict[str, Any]) -> List[Row]:
        if not eq:
            raise StoreError("Refusing to update without a filter")
        params: List[tuple[str, str]] = [("select", "*")]
        params.extend((k, _filter_value(v)) for k, v in eq.items())
        resp = await self._request("PATCH", table, params=params, json=values, prefer="return=representation")
        return self._rows(resp)

    async def delete(self, table: str, *, eq: Dict[str, Any]) -> int:
        if not eq:
            raise StoreError("Refusing to delete without a filter")
        params = [(k, _filter_value(v)) for k, v in eq.items()]
        resp = await self._request("DELETE", table, params=params, prefer="count=exact,return=minimal")
        count = _count_from_content_range(resp.headers.get("content-range"))
        return count or 0
