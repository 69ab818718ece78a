"""Persistent list of temporary mirror records."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .local import LocalStorage
from .models import MirrorRecord

STORAGE_KEY = "bolt_temp_repos"

logger = logging.getLogger(__name__)

Mutator = Callable[[list[MirrorRecord]], list[MirrorRecord]]


class MirrorStore:
    """Whole-array store of :class:`MirrorRecord` entries.

    Every write is a full read-modify-write of the array. Writers go through a
    single lock so concurrent imports and cleanup passes cannot drop each
    other's updates.
    """

    def __init__(self, storage: LocalStorage, *, key: str = STORAGE_KEY) -> None:
        self._storage = storage
        self._key = key
        self._write_lock = asyncio.Lock()

    @property
    def key(self) -> str:
        return self._key

    async def get_all(self) -> Any:
        """Return the stored value as-is.

        A missing key reads as an empty list. Anything else, including a
        corrupted non-list value, is returned unchanged for the caller to judge.
        """

        stored = await self._storage.get(self._key)
        return [] if stored is None else stored

    async def load_records(self) -> list[MirrorRecord]:
        return self._parse(await self.get_all())

    async def add(self, record: MirrorRecord) -> None:
        await self.update(lambda records: [*records, record])

    async def remove(self, mirror_repo: str) -> bool:
        removed = False

        def _drop(records: list[MirrorRecord]) -> list[MirrorRecord]:
            nonlocal removed
            survivors = [record for record in records if record.mirror_repo != mirror_repo]
            removed = len(survivors) != len(records)
            return survivors

        await self.update(_drop)
        return removed

    async def replace(self, records: list[MirrorRecord]) -> None:
        await self.update(lambda _current: list(records))

    async def update(self, mutator: Mutator) -> list[MirrorRecord]:
        """Apply ``mutator`` to the current records and write the result in one call.

        Entries that cannot be parsed are written back unchanged after the
        mutated records.
        """

        async with self._write_lock:
            current, unparsed = self._split(await self.get_all())
            updated = mutator(current)
            await self._storage.set(self._key, [record.to_payload() for record in updated] + unparsed)
            return updated

    def _parse(self, stored: Any) -> list[MirrorRecord]:
        return self._split(stored)[0]

    def _split(self, stored: Any) -> tuple[list[MirrorRecord], list[Any]]:
        if not isinstance(stored, list):
            logger.warning(
                "Mirror store holds a non-list value; treating it as empty",
                extra={"key": self._key, "value_type": type(stored).__name__},
            )
            return [], []

        records: list[MirrorRecord] = []
        unparsed: list[Any] = []
        for entry in stored:
            if not isinstance(entry, dict):
                logger.warning("Skipping malformed mirror entry", extra={"entry": repr(entry)[:200]})
                unparsed.append(entry)
                continue
            try:
                records.append(MirrorRecord.from_payload(entry))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping unparsable mirror entry",
                    extra={"entry": repr(entry)[:200], "error": str(exc)},
                )
                unparsed.append(entry)
        return records, unparsed


__all__ = ["MirrorStore", "STORAGE_KEY"]
