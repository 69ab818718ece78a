"""Poll the account settings file and report which settings keys changed."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable

from ..account import SETTINGS_KEYS, AccountSettings, AccountSettingsError, AccountSettingsLoader

logger = logging.getLogger(__name__)

SETTINGS_POLL_INTERVAL_SECONDS = 2.0

ChangeCallback = Callable[[frozenset[str]], Awaitable[object]]

_Signature = tuple[int, int] | None


def _settings_values(account: AccountSettings | None) -> dict[str, str]:
    if account is None:
        account = AccountSettings()
    return {key: str(getattr(account, key)) for key in SETTINGS_KEYS}


class SettingsFileWatcher:
    """Watch the account YAML and call ``on_change`` with the keys that differ.

    The file is only parsed when its size or modification time moves, and a
    document that fails to load is skipped until the next edit.
    """

    def __init__(
        self,
        loader: AccountSettingsLoader,
        on_change: ChangeCallback,
        *,
        interval: float = SETTINGS_POLL_INTERVAL_SECONDS,
    ) -> None:
        self._loader = loader
        self._on_change = on_change
        self._interval = interval
        self._signature: _Signature = None
        self._values: dict[str, str] = _settings_values(None)
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _stat(self) -> _Signature:
        path: Path = self._loader.path
        try:
            stat = path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_mtime_ns, stat.st_size)

    def snapshot(self, account: AccountSettings | None) -> None:
        """Record the settings currently in effect as the baseline."""

        self._signature = self._stat()
        self._values = _settings_values(account)

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(
            "Watching account settings",
            extra={"path": str(self._loader.path), "interval": self._interval},
        )

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.check()
            except Exception:
                logger.exception("Settings check failed")

    async def check(self) -> frozenset[str]:
        """Compare the file against the baseline and report changed keys."""

        signature = self._stat()
        if signature == self._signature:
            return frozenset()

        try:
            account = self._loader.load()
        except AccountSettingsError as exc:
            logger.warning("Ignoring unreadable account settings", extra={"error": str(exc)})
            self._signature = signature
            return frozenset()

        values = _settings_values(account)
        changed = frozenset(key for key in SETTINGS_KEYS if values[key] != self._values[key])
        self._signature = signature
        self._values = values
        if changed:
            logger.info("Account settings file changed", extra={"keys": sorted(changed)})
            await self._on_change(changed)
        return changed


__all__ = ["SETTINGS_POLL_INTERVAL_SECONDS", "SettingsFileWatcher"]
