from __future__ import annotations

import asyncio
import logging

from stall_api.errors import AllowlistQueryFailure, NotAuthorized, StoreError
from stall_api.record_store import RecordStore

logger = logging.getLogger("stall_api.allowlist")


class AllowlistGate:
    """Grants access when an email is on the owners list or the clubs list."""

    def __init__(self, store: RecordStore, *, owners_table: str = "allowed_owners", clubs_table: str = "allowed_clubs"):
        self._store = store
        self._tables = {"owner": owners_table, "club": clubs_table}

    async def _is_listed(self, table: str, email: str) -> bool:
        rows = await self._store.select(table, eq={"email": email}, limit=1)
        return bool(rows)

    async def check(self, email: str) -> list[str]:
        """Return the roles ``email`` is listed under.

        Raises NotAuthorized when it is on neither list, and
        AllowlistQueryFailure when either lookup fails.
        """
        roles = list(self._tables)
        results = await asyncio.gather(
            *(self._is_listed(self._tables[r], email) for r in roles),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        for err in failures:
            if not isinstance(err, StoreError):
                raise err
        if failures:
            detail = "; ".join(str(e) for e in failures)
            logger.warning("Allowlist lookup failed for %s: %s", email, detail)
            raise AllowlistQueryFailure(details=detail)

        granted = [role for role, listed in zip(roles, results) if listed]
        if not granted:
            logger.info("Rejected %s: not on any allowlist", email)
            raise NotAuthorized()
        return granted
