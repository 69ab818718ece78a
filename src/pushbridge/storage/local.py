"""Key/value storage area backed by a single JSON document."""

from __future__ import annotations

import asyncio
import json
import os
import threading
from pathlib import Path
from typing import Any


class LocalStorage:
    """Async key/value store.

    Values are JSON documents. Every ``get`` returns a fresh copy so callers
    never share mutable state with the store. Without a path the data lives
    in memory only.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._memory: dict[str, str] = {}
        self._file_lock = threading.Lock()

    @property
    def path(self) -> Path | None:
        return self._path

    async def get(self, key: str) -> Any:
        if self._path is None:
            raw = self._memory.get(key)
            return json.loads(raw) if raw is not None else None
        data = await asyncio.to_thread(self._read_file)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value)
        if self._path is None:
            self._memory[key] = encoded
            return
        await asyncio.to_thread(self._write_key, key, json.loads(encoded))

    async def remove(self, key: str) -> None:
        if self._path is None:
            self._memory.pop(key, None)
            return
        await asyncio.to_thread(self._write_key, key, None, True)

    def _read_file(self) -> dict[str, Any]:
        assert self._path is not None
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        data = json.loads(text)
        return data if isinstance(data, dict) else {}

    def _write_key(self, key: str, value: Any, delete: bool = False) -> None:
        assert self._path is not None
        with self._file_lock:
            data = self._read_file()
            if delete:
                data.pop(key, None)
            else:
                data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
            os.replace(tmp_path, self._path)


__all__ = ["LocalStorage"]
