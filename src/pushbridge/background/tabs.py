"""Opening browser tabs for the target web tool."""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class TabOpener(Protocol):
    async def open_tab(self, url: str, *, active: bool = True) -> None:
        ...


class BrowserTabOpener:
    """Open URLs in the user's default browser."""

    async def open_tab(self, url: str, *, active: bool = True) -> None:
        opened = await asyncio.to_thread(webbrowser.open, url, 2, active)
        if not opened:
            logger.warning("Browser refused to open tab", extra={"url": url})


class RecordingTabOpener:
    """Collects requested URLs instead of opening them."""

    def __init__(self) -> None:
        self.opened: list[dict[str, object]] = []

    async def open_tab(self, url: str, *, active: bool = True) -> None:
        self.opened.append({"url": url, "active": active})


def build_mirror_url(target_host: str, hosting_host: str, owner: str, mirror_repo: str) -> str:
    return f"https://{target_host}/~/{hosting_host}/{owner}/{mirror_repo}"


__all__ = ["BrowserTabOpener", "RecordingTabOpener", "TabOpener", "build_mirror_url"]
