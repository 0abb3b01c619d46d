from __future__ import annotations

import copy
import itertools
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Protocol

from stall_api.errors import UniqueViolation

Row = Dict[str, Any]


class RecordStore(Protocol):
    """Table-style capability interface over the backing store.

    Filters are equality predicates (``column == value``). Implementations
    raise ``StoreError`` on failure and ``UniqueViolation`` when a write
    breaks a unique constraint.
    """

    async def select(
        self,
        table: str,
        *,
        eq: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]: ...

    async def insert(self, table: str, values: Row) -> Row: ...

    async def update(self, table: str, values: Row, *, eq: Dict[str, Any]) -> List[Row]: ...

    async def delete(self, table: str, *, eq: Dict[str, Any]) -> int: ...


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class InMemoryRecordStore:
    """Thread-safe in-process record store.

    What it's for:
    - Local development without a Supabase project.
    - Tests.

    Storage semantics:
    - Stored only in the API process memory (cleared on restart).
    - Not shared across multiple API instances.
    - Every call is atomic on its own; there are no multi-call transactions.

    ``unique`` maps a table name to the columns that must be unique within it.
    Rows get an ``id`` (uuid4) and ``created_at`` (UTC ISO timestamp) unless
    the caller supplies them.
    """

    def __init__(self, *, unique: Optional[Dict[str, Iterable[str]]] = None):
        self._lock = threading.Lock()
        self._tables: Dict[str, List[Row]] = {}
        self._unique: Dict[str, tuple[str, ...]] = {t: tuple(cols) for t, cols in (unique or {}).items()}
        # Insertion order breaks ties between equal created_at values.
        self._seq = itertools.count()

    def seed(self, table: str, rows: Iterable[Row]) -> None:
        with self._lock:
            arr = self._tables.setdefault(table, [])
            for r in rows:
                arr.append(self._materialize(r))

    def rows(self, table: str) -> List[Row]:
        with self._lock:
            return [self._public(r) for r in self._tables.get(table, [])]

    async def select(
        self,
        table: str,
        *,
        eq: Dict[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        with self._lock:
            found = [r for r in self._tables.get(table, []) if _matches(r, eq)]
            if order_by:
                found.sort(key=lambda r: (r.get(order_by), r["_seq"]), reverse=descending)
            if limit is not None:
                found = found[: max(0, limit)]
            return [self._public(r) for r in found]

    async def insert(self, table: str, values: Row) -> Row:
        with self._lock:
            row = self._materialize(values)
            self._check_unique(table, row, ignore=None)
            self._tables.setdefault(table, []).append(row)
            return self._public(row)

    async def update(self, table: str, values: Row, *, eq: Dict[str, Any]) -> List[Row]:
        with self._lock:
            targets = [r for r in self._tables.get(table, []) if _matches(r, eq)]
            touched = [c for c in ("id",) + self._unique.get(table, ()) if c in values]
            if len(targets) > 1 and touched:
                raise UniqueViolation(
                    f"update would give {len(targets)} rows the same {touched[0]}", column=touched[0]
                )
            for r in targets:
                self._check_unique(table, {**r, **values}, ignore=r)
            for r in targets:
                r.update(copy.deepcopy(values))
            return [self._public(r) for r in targets]

    async def delete(self, table: str, *, eq: Dict[str, Any]) -> int:
        with self._lock:
            arr = self._tables.get(table, [])
            keep = [r for r in arr if not _matches(r, eq)]
            removed = len(arr) - len(keep)
            self._tables[table] = keep
            return removed

    def _materialize(self, values: Row) -> Row:
        row = copy.deepcopy(dict(values))
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", _utcnow_iso())
        row["_seq"] = next(self._seq)
        return row

    def _check_unique(self, table: str, candidate: Row, *, ignore: Optional[Row]) -> None:
        for col in ("id",) + self._unique.get(table, ()):
            value = candidate.get(col)
            if value is None:
                continue
            for other in self._tables.get(table, []):
                if other is ignore:
                    continue
                if other.get(col) == value:
                    raise UniqueViolation(
                        f'duplicate key value violates unique constraint "{table}_{col}_key"',
                        column=col,
                    )

    @staticmethod
    def _public(row: Row) -> Row:
        return {k: copy.deepcopy(v) for k, v in row.items() if not k.startswith("_")}


def _matches(row: Row, eq: Dict[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in eq.items())

