from __future__ import annotations

import logging
import re
from typing import Any, Optional

from stall_api.errors import InvalidName, SlugQueryFailure, StoreError
from stall_api.record_store import RecordStore

logger = logging.getLogger("stall_api.slugs")

_QUOTES = re.compile("['\"‘’“”]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_HYPHENS = re.compile(r"-+")


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, URL-safe form of ``text``.

    >>> slugify("Tom's Tacos!!")
    'toms-tacos'
    """
    s = text.lower().strip()
    s = _QUOTES.sub("", s)
    s = _NON_ALNUM.sub("-", s)
    s = _HYPHENS.sub("-", s)
    return s.strip("-")


def base_slug(name: Any) -> str:
    if not isinstance(name, str):
        raise InvalidName()
    slug = slugify(name)
    if not slug:
        raise InvalidName()
    return slug


class SlugResolver:
    """Finds a slug that no other submission holds.

    Candidates are probed one at a time: ``base``, ``base-2``, ``base-3``, ...
    A candidate held by ``own_row_id`` (the requester's latest row) counts as free.
    """

    def __init__(self, store: RecordStore, *, table: str = "stall_submissions", column: str = "stall_slug"):
        self._store = store
        self._table = table
        self._column = column

    async def _holder(self, candidate: str) -> Optional[dict[str, Any]]:
        try:
            rows = await self._store.select(self._table, eq={self._column: candidate}, limit=2)
        except StoreError as e:
            raise SlugQueryFailure(details=e.message) from e
        if len(rows) > 1:
            # Only reachable if the store lets duplicate slugs through.
            raise SlugQueryFailure(details=f"multiple rows share slug {candidate!r}")
        return rows[0] if rows else None

    async def resolve(self, name: Any, *, own_row_id: Any = None) -> str:
        base = base_slug(name)
        candidate = base
        n = 2
        while True:
            holder = await self._holder(candidate)
            if holder is None:
                return candidate
            if own_row_id is not None and holder.get("id") == own_row_id:
                return candidate
            logger.debug("Slug %r is held by row %s", candidate, holder.get("id"))
            candidate = f"{base}-{n}"
            n += 1
