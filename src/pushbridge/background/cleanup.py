"""Time-driven reclamation of temporary mirror repositories."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from typing import Callable

from ..hosting import HostingClient
from ..storage import MirrorRecord, MirrorStore
from .errors import is_not_found

logger = logging.getLogger(__name__)

MAX_AGE_SECONDS = 60.0
CLEANUP_INTERVAL_SECONDS = 60.0
MAX_CLEANUP_ATTEMPTS = 3

AbandonHook = Callable[[MirrorRecord, BaseException], None]


@dataclass(slots=True)
class CleanupReport:
    """Outcome of a single cleanup pass."""

    deleted: list[str] = field(default_factory=list)
    abandoned: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)
    pending: int = 0
    skipped: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "deleted": list(self.deleted),
            "abandoned": list(self.abandoned),
            "retained": list(self.retained),
            "pending": self.pending,
            "skipped": self.skipped,
        }


class CleanupScheduler:
    """Periodically delete expired or force-flagged mirrors.

    The timer runs only while mirrors are known: it stops itself after any
    pass that leaves the store empty, and mirror-creating callers call
    :meth:`start` after adding a record.
    """

    def __init__(
        self,
        client: HostingClient | None,
        mirror_store: MirrorStore,
        *,
        max_age: float = MAX_AGE_SECONDS,
        interval: float = CLEANUP_INTERVAL_SECONDS,
        max_attempts: int = MAX_CLEANUP_ATTEMPTS,
        clock: Callable[[], float] = time.time,
        on_abandon: AbandonHook | None = None,
    ) -> None:
        self._client = client
        self._mirror_store = mirror_store
        self._max_age = max_age
        self._interval = interval
        self._max_attempts = max_attempts
        self._clock = clock
        self._on_abandon = on_abandon
        self._task: asyncio.Task[None] | None = None

    @property
    def client(self) -> HostingClient | None:
        return self._client

    @client.setter
    def client(self, client: HostingClient | None) -> None:
        self._client = client

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def interval(self) -> float:
        return self._interval

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run_timer())
        logger.info("Cleanup timer started", extra={"interval": self._interval})

    def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        if task is not asyncio.current_task():
            task.cancel()
        logger.info("Cleanup timer stopped")

    async def _run_timer(self) -> None:
        current = asyncio.current_task()
        while self._task is current:
            await asyncio.sleep(self._interval)
            if self._task is not current:
                break
            try:
                await self.run_cleanup_pass()
            except Exception:
                logger.exception("Cleanup pass failed")

    def is_expired(self, record: MirrorRecord, now: float) -> bool:
        return now - record.created_at > self._max_age

    async def run_cleanup_pass(self, force: bool = False) -> CleanupReport:
        report = CleanupReport()
        stored = await self._mirror_store.get_all()
        if not isinstance(stored, list):
            logger.error(
                "Mirror store is corrupted; skipping cleanup pass",
                extra={"value_type": type(stored).__name__},
            )
            report.skipped = True
            return report

        records = await self._mirror_store.load_records()
        now = self._clock()
        candidates = [record for record in records if force or self.is_expired(record, now)]

        client = self._client
        if candidates and client is None:
            logger.warning(
                "Hosting client unavailable; cannot delete mirrors",
                extra={"candidates": len(candidates)},
            )
            report.retained = [record.mirror_repo for record in candidates]
            report.pending = len(records)
            return report

        # mirror_repo -> replacement record, or None to drop it
        outcomes: dict[str, MirrorRecord | None] = {}
        if client is not None:
            for record in candidates:
                outcomes[record.mirror_repo] = await self._delete_candidate(client, record, report)

        def _apply(current: list[MirrorRecord]) -> list[MirrorRecord]:
            survivors: list[MirrorRecord] = []
            for record in current:
                if record.mirror_repo not in outcomes:
                    survivors.append(record)
                    continue
                replacement = outcomes[record.mirror_repo]
                if replacement is not None:
                    survivors.append(replacement)
            return survivors

        survivors = await self._mirror_store.update(_apply) if outcomes else records
        report.pending = len(survivors)

        logger.info(
            "Cleanup pass finished",
            extra={
                "force": force,
                "deleted": len(report.deleted),
                "abandoned": len(report.abandoned),
                "retained": len(report.retained),
                "pending": report.pending,
            },
        )

        if not survivors:
            self.stop()
        return report

    async def _delete_candidate(
        self,
        client: HostingClient,
        record: MirrorRecord,
        report: CleanupReport,
    ) -> MirrorRecord | None:
        try:
            await client.delete_repo(record.owner, record.mirror_repo)
        except Exception as exc:
            if is_not_found(exc):
                logger.info(
                    "Mirror already gone; dropping record",
                    extra={"mirror_repo": record.mirror_repo},
                )
                report.deleted.append(record.mirror_repo)
                return None

            attempts = record.cleanup_attempts + 1
            if attempts >= self._max_attempts:
                logger.warning(
                    "Giving up on mirror cleanup; repository left in place",
                    extra={
                        "mirror_repo": record.mirror_repo,
                        "owner": record.owner,
                        "attempts": attempts,
                        "error": str(exc),
                    },
                )
                report.abandoned.append(record.mirror_repo)
                if self._on_abandon is not None:
                    try:
                        self._on_abandon(replace(record, cleanup_attempts=attempts), exc)
                    except Exception:
                        logger.exception("Abandoned-mirror hook failed")
                return None

            logger.error(
                "Failed to delete mirror",
                extra={"mirror_repo": record.mirror_repo, "attempts": attempts, "error": str(exc)},
            )
            report.retained.append(record.mirror_repo)
            return replace(record, cleanup_attempts=attempts)

        logger.info("Deleted mirror", extra={"mirror_repo": record.mirror_repo, "owner": record.owner})
        report.deleted.append(record.mirror_repo)
        return None


__all__ = [
    "CLEANUP_INTERVAL_SECONDS",
    "CleanupReport",
    "CleanupScheduler",
    "MAX_AGE_SECONDS",
    "MAX_CLEANUP_ATTEMPTS",
]
