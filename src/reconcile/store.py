"""Store interfaces the engine reads from, plus an in-memory implementation.

The production backend is a document store shared with the CRUD screens.
The engine only needs a handful of operations, described here as async
protocols. MemoryStore implements them over plain dicts and backs the tests
and the snapshot-driven scripts.
"""

import asyncio
import copy
import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from src.reconcile.errors import MissingIndexError, TransientError
from src.reconcile.logging import get_logger

logger = get_logger(__name__)

Document = dict[str, Any]


class TimesheetStore(Protocol):
    """Read-only access to the timesheets collection."""

    async def array_contains(self, field_path: str, value: Any) -> list[Document]: ...

    async def where_equals(self, field_path: str, value: Any) -> list[Document]: ...

    async def get(self, doc_id: str) -> Document | None: ...

    async def scan(self) -> list[Document]: ...


class BookingStore(Protocol):
    """Access to the bookings collection, including the sweep's batch write."""

    async def get(self, doc_id: str) -> Document | None: ...

    async def scan(self) -> list[Document]: ...

    async def prefix_range(self, field_path: str, prefix: str) -> list[Document]: ...

    async def commit_batch(self, updates: Mapping[str, Mapping[str, Any]]) -> None:
        """Apply every update or none of them."""
        ...


def resolve_path(doc: Mapping[str, Any], field_path: str) -> Any:
    """Resolve a dotted field path ("jobSnapshot.bookingIds") against a document."""
    current: Any = doc
    for part in field_path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return None
        current = current[part]
    return current


class MemoryCollection:
    """One in-memory collection answering the store protocol queries.

    Reads return deep copies so callers always hold a point-in-time snapshot.
    Field paths listed in ``unindexed`` raise MissingIndexError when queried,
    mirroring a backend that refuses queries without a composite index.
    """

    def __init__(
        self,
        name: str,
        documents: Iterable[Mapping[str, Any]] = (),
        *,
        unindexed: Iterable[str] = (),
    ) -> None:
        self.name = name
        self.unindexed = set(unindexed)
        self._docs: dict[str, Document] = {}
        # Simulated outages: doc id / field path -> remaining transient failures
        self._flaky: dict[str, int] = {}
        for doc in documents:
            self.put(doc)

    def put(self, doc: Mapping[str, Any]) -> None:
        if doc.get("id") is None:
            raise ValueError(f"{self.name}: document without an id")
        self._docs[str(doc["id"])] = copy.deepcopy(dict(doc))

    def fail_transiently(self, key: str, times: int = 1) -> None:
        """Make the next ``times`` reads of a doc id or field path raise TransientError."""
        self._flaky[key] = times

    def _maybe_fail(self, key: str) -> None:
        remaining = self._flaky.get(key, 0)
        if remaining > 0:
            self._flaky[key] = remaining - 1
            raise TransientError(f"{self.name}: {key} temporarily unavailable")

    def _check_index(self, field_path: str) -> None:
        if field_path in self.unindexed:
            raise MissingIndexError(field_path)
        self._maybe_fail(field_path)

    def _matching(self, predicate) -> list[Document]:
        return [copy.deepcopy(doc) for doc in self._docs.values() if predicate(doc)]

    async def array_contains(self, field_path: str, value: Any) -> list[Document]:
        self._check_index(field_path)
        await asyncio.sleep(0)

        def contains(doc: Document) -> bool:
            values = resolve_path(doc, field_path)
            return isinstance(values, (list, tuple)) and value in values

        return self._matching(contains)

    async def where_equals(self, field_path: str, value: Any) -> list[Document]:
        self._check_index(field_path)
        await asyncio.sleep(0)

        def equals(doc: Document) -> bool:
            found = resolve_path(doc, field_path)
            # Typed equality: "14" and 14 are different values in the store
            return type(found) is type(value) and found == value

        return self._matching(equals)

    async def prefix_range(self, field_path: str, prefix: str) -> list[Document]:
        self._check_index(field_path)
        await asyncio.sleep(0)

        def in_range(doc: Document) -> bool:
            found = resolve_path(doc, field_path)
            return isinstance(found, str) and found.startswith(prefix)

        return sorted(self._matching(in_range), key=lambda d: str(resolve_path(d, field_path)))

    async def get(self, doc_id: str) -> Document | None:
        self._maybe_fail(doc_id)
        await asyncio.sleep(0)
        doc = self._docs.get(str(doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def scan(self) -> list[Document]:
        await asyncio.sleep(0)
        return self._matching(lambda doc: True)

    async def commit_batch(self, updates: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge field updates into several documents atomically.

        Every target must exist; otherwise nothing is written.
        """
        self._maybe_fail("__batch__")
        await asyncio.sleep(0)
        missing = [doc_id for doc_id in updates if str(doc_id) not in self._docs]
        if missing:
            raise KeyError(f"{self.name}: no document(s) {missing}")
        for doc_id, fields in updates.items():
            self._docs[str(doc_id)].update(copy.deepcopy(dict(fields)))
        logger.debug("batch_committed", collection=self.name, documents=len(updates))


class MemoryStore:
    """Bookings and timesheets held in memory."""

    def __init__(
        self,
        bookings: Iterable[Mapping[str, Any]] = (),
        timesheets: Iterable[Mapping[str, Any]] = (),
        *,
        unindexed: Iterable[str] = (),
    ) -> None:
        self.bookings = MemoryCollection("bookings", bookings)
        self.timesheets = MemoryCollection("timesheets", timesheets, unindexed=unindexed)

    @classmethod
    def from_snapshot(cls, path: str | Path) -> "MemoryStore":
        """Load a JSON snapshot shaped ``{"bookings": [...], "timesheets": [...]}``."""
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        store = cls(data.get("bookings", []), data.get("timesheets", []))
        logger.info(
            "snapshot_loaded",
            path=str(path),
            bookings=len(data.get("bookings", [])),
            timesheets=len(data.get("timesheets", [])),
        )
        return store

    async def write_snapshot(self, path: str | Path) -> None:
        data = {
            "bookings": await self.bookings.scan(),
            "timesheets": await self.timesheets.scan(),
        }
        Path(path).write_text(
            json.dumps(data, indent=2, ensure_ascii=False, default=str), encoding="utf-8"
        )
        logger.info("snapshot_written", path=str(path))
