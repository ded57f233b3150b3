"""Versioned key-value store holding the registry, history and summary documents.

Every read returns the document together with its version; every write names
the version it was derived from. A write against a stale version raises
``VersionConflict`` instead of silently overwriting a concurrent commit.
"""

import asyncio
import copy
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from furlong.config import local_now_naive
from furlong.models.store_entry import StoreEntry

logger = logging.getLogger(__name__)

REGISTRY_KEY = "registry"
HISTORY_KEY = "history"
SUMMARIES_KEY = "summaries"


class VersionConflict(Exception):
    """Raised when a write names a version that is no longer current."""

    def __init__(self, key: str, expected: int, actual: int):
        super().__init__(f"Version conflict on '{key}': expected {expected}, found {actual}")
        self.key = key
        self.expected = expected
        self.actual = actual


@dataclass
class Versioned:
    """A stored document and the version it was read at (0 = never written)."""

    value: Any
    version: int = 0


class KeyValueStore(ABC):
    """get/put interface with optimistic versioning."""

    def __init__(self):
        # Serialises read-modify-write sequences within this process
        self.lock = asyncio.Lock()

    @abstractmethod
    async def get(self, key: str) -> Versioned:
        """Return the document under ``key`` (``None`` value when missing)."""

    @abstractmethod
    async def put_many(self, writes: dict[str, tuple[Any, Optional[int]]]) -> dict[str, int]:
        """Atomically write ``{key: (value, expected_version)}``.

        ``expected_version=None`` skips the version check for that key.
        Returns the new version of every written key.
        """

    async def put(self, key: str, value: Any, expected_version: Optional[int] = None) -> int:
        versions = await self.put_many({key: (value, expected_version)})
        return versions[key]

    async def get_many(self, *keys: str) -> dict[str, Versioned]:
        return {key: await self.get(key) for key in keys}


class MemoryStore(KeyValueStore):
    """In-process store. Values are deep-copied on the way in and out."""

    def __init__(self, initial: Optional[dict[str, Any]] = None):
        super().__init__()
        self._data: dict[str, Versioned] = {}
        for key, value in (initial or {}).items():
            self._data[key] = Versioned(copy.deepcopy(value), 1)

    async def get(self, key: str) -> Versioned:
        current = self._data.get(key)
        if current is None:
            return Versioned(None, 0)
        return Versioned(copy.deepcopy(current.value), current.version)

    async def put_many(self, writes: dict[str, tuple[Any, Optional[int]]]) -> dict[str, int]:
        for key, (_, expected) in writes.items():
            actual = self._data[key].version if key in self._data else 0
            if expected is not None and expected != actual:
                raise VersionConflict(key, expected, actual)

        versions = {}
        for key, (value, _) in writes.items():
            actual = self._data[key].version if key in self._data else 0
            self._data[key] = Versioned(copy.deepcopy(value), actual + 1)
            versions[key] = actual + 1
        return versions


class SqlStore(KeyValueStore):
    """Store backed by the ``store_entries`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self.session_factory = session_factory

    async def get(self, key: str) -> Versioned:
        async with self.session_factory() as db:
            row = await db.get(StoreEntry, key)
            if row is None:
                return Versioned(None, 0)
            return Versioned(row.value, row.version)

    async def put_many(self, writes: dict[str, tuple[Any, Optional[int]]]) -> dict[str, int]:
        versions = {}
        async with self.session_factory() as db:
            try:
                for key, (value, expected) in writes.items():
                    result = await db.execute(
                        select(StoreEntry.version).where(StoreEntry.key == key)
                    )
                    actual = result.scalar_one_or_none()
                    if actual is None:
                        if expected not in (None, 0):
                            raise VersionConflict(key, expected, 0)
                        db.add(StoreEntry(key=key, value_json=json.dumps(value), version=1))
                        versions[key] = 1
                        continue

                    if expected is not None and expected != actual:
                        raise VersionConflict(key, expected, actual)
                    # Version guard in the WHERE clause catches writers from other processes
                    updated = await db.execute(
                        update(StoreEntry)
                        .where(StoreEntry.key == key, StoreEntry.version == actual)
                        .values(
                            value_json=json.dumps(value),
                            version=actual + 1,
                            updated_at=local_now_naive(),
                        )
                    )
                    if updated.rowcount != 1:
                        raise VersionConflict(key, actual, -1)
                    versions[key] = actual + 1
                await db.commit()
            except VersionConflict:
                await db.rollback()
                raise
            except IntegrityError as e:
                await db.rollback()
                logger.warning(f"Concurrent insert detected while writing {list(writes)}: {e}")
                raise VersionConflict(",".join(writes), 0, -1)
        return versions
