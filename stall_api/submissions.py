from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from stall_api.errors import PersistenceFailure, StoreError, UniqueViolation
from stall_api.record_store import RecordStore
from stall_api.slugs import SlugResolver, base_slug

logger = logging.getLogger("stall_api.submissions")

Row = Dict[str, Any]

# Columns returned to clients. owner_email stays server-side.
PUBLIC_COLUMNS = ("id", "payload", "created_at", "stall_slug")
SLUG_COLUMN = "stall_slug"


def public_row(row: Optional[Row]) -> Optional[Row]:
    if row is None:
        return None
    return {k: row.get(k) for k in PUBLIC_COLUMNS}


class SubmissionStore:
    """One authoritative submission per owner: the most recently created row."""

    def __init__(
        self,
        store: RecordStore,
        *,
        table: str = "stall_submissions",
        slug_conflict_retries: int = 3,
    ):
        self._store = store
        self._table = table
        self._retries = max(0, slug_conflict_retries)
        self._slugs = SlugResolver(store, table=table, column=SLUG_COLUMN)

    async def _latest(self, email: str) -> Optional[Row]:
        rows = await self._store.select(
            self._table,
            eq={"owner_email": email},
            order_by="created_at",
            descending=True,
            limit=1,
        )
        return rows[0] if rows else None

    async def latest(self, email: str) -> Optional[Row]:
        try:
            return await self._latest(email)
        except StoreError as e:
            raise PersistenceFailure("Failed to load submission", details=e.message) from e

    async def save(self, email: str, payload: Dict[str, Any]) -> Row:
        """Create or replace the owner's submission and return the stored row.

        A write rejected by the slug unique constraint means another owner
        claimed the candidate after it was probed; the slug is resolved
        again and the write retried. Any other unique violation (for example
        a concurrent first save by the same owner) fails immediately.
        """
        base_slug(payload.get("name"))

        try:
            existing = await self._latest(email)
        except StoreError as e:
            raise PersistenceFailure("Failed to load existing submission", details=e.message) from e

        own_id = existing.get("id") if existing else None
        attempt = 0
        while True:
            slug = await self._slugs.resolve(payload.get("name"), own_row_id=own_id)
            try:
                row = await self._write(email, payload, slug, own_id)
            except UniqueViolation as e:
                if not e.on_column(SLUG_COLUMN) or attempt >= self._retries:
                    raise PersistenceFailure(details=e.message) from e
                attempt += 1
                logger.info("Slug %r was claimed concurrently; resolving again (attempt %d)", slug, attempt)
                continue
            except StoreError as e:
                raise PersistenceFailure(details=e.message) from e

            logger.info("Saved submission %s for %s (slug=%s)", row.get("id"), email, slug)
            return row

    async def _write(self, email: str, payload: Dict[str, Any], slug: str, own_id: Any) -> Row:
        if own_id is not None:
            rows = await self._store.update(
                self._table,
                {SLUG_COLUMN: slug, "payload": payload},
                eq={"id": own_id},
            )
            if not rows:
                raise StoreError("Submission disappeared during update")
            return rows[0]

        return await self._store.insert(
            self._table,
            {"owner_email": email, SLUG_COLUMN: slug, "payload": payload},
        )

    async def delete_all(self, email: str) -> int:
        try:
            removed = await self._store.delete(self._table, eq={"owner_email": email})
        except StoreError as e:
            raise PersistenceFailure("Failed to delete submission", details=e.message) from e
        logger.info("Deleted %d submission row(s) for %s", removed, email)
        return removed
