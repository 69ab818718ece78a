"""Port registry and message dispatch for UI surfaces."""

from __future__ import annotations

import asyncio
import logging
import re
from collections import deque
from typing import Any, Iterable, Protocol

from ..account import SETTINGS_KEYS
from .messages import (
    ContentScriptReady,
    DebugMessage,
    DeleteTempRepo,
    ImportPrivateRepo,
    OpenSettings,
    SetCommitMessage,
    UploadStatus,
    ZipDataMessage,
    parse_message,
    status_envelope,
)

logger = logging.getLogger(__name__)

ALLOWED_PORT_NAMES = frozenset({"bolt-content", "popup"})
POPUP_TAB_KEY = -1
SETTINGS_NAMESPACE = "sync"

_CLOSE = object()


class Port(Protocol):
    name: str
    tab_id: int | None

    def post_message(self, message: dict[str, Any]) -> None:
        ...


class RouterBackend(Protocol):
    async def handle_upload(self, data: str, project_id: str | None) -> UploadStatus:
        ...

    def set_commit_message(self, message: str) -> None:
        ...

    async def import_private_repo(self, repo_name: str, branch: str | None = None) -> Any:
        ...

    async def cleanup_temp_repos(self, force: bool = False) -> Any:
        ...

    async def open_settings(self) -> None:
        ...

    async def reinitialize(self) -> None:
        ...


def tab_key_for(port: Port) -> int:
    return POPUP_TAB_KEY if port.tab_id is None else port.tab_id


class BufferedPort:
    """Port whose outbound messages are held until a caller collects them."""

    def __init__(self, name: str, tab_id: int | None = None, *, limit: int = 100) -> None:
        self.name = name
        self.tab_id = tab_id
        self._messages: deque[dict[str, Any]] = deque(maxlen=limit)

    def post_message(self, message: dict[str, Any]) -> None:
        self._messages.append(message)

    def take(self) -> list[dict[str, Any]]:
        messages = list(self._messages)
        self._messages.clear()
        return messages


class PortConnection:
    """Inbound channel for one port.

    Messages are queued on :meth:`deliver` and dispatched one at a time in
    arrival order by a consumer task.
    """

    def __init__(self, router: "PortRouter", tab_key: int, port: Port) -> None:
        self._router = router
        self.tab_key = tab_key
        self.port = port
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._consumer = asyncio.get_running_loop().create_task(self._consume())

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, raw: Any) -> None:
        if self._closed:
            logger.debug("Dropping message for closed port", extra={"tab_key": self.tab_key})
            return
        self._queue.put_nowait(raw)

    async def drain(self) -> None:
        await self._queue.join()

    def disconnect(self) -> None:
        """Detach the port; messages already queued still run."""

        if self._closed:
            return
        self._closed = True
        self._router._detach(self)
        self._queue.put_nowait(_CLOSE)

    async def aclose(self) -> None:
        self.disconnect()
        self._consumer.cancel()
        try:
            await self._consumer
        except asyncio.CancelledError:
            pass

    async def _consume(self) -> None:
        while True:
            raw = await self._queue.get()
            try:
                if raw is _CLOSE:
                    return
                await self._router.dispatch(self.tab_key, raw, port=self.port)
            finally:
                self._queue.task_done()


class PortRouter:
    """Track live UI ports and route their messages to the background backend."""

    def __init__(self, backend: RouterBackend, *, target_host: str = "bolt.new") -> None:
        self._backend = backend
        self._ports: dict[int, Port] = {}
        self._connections: dict[int, PortConnection] = {}
        self._project_url = re.compile(rf"^https?://{re.escape(target_host)}/~/([^/?#]+)")
        self.project_id: str | None = None

    @property
    def ports(self) -> dict[int, Port]:
        return dict(self._ports)

    def register(self, port: Port) -> PortConnection | None:
        if port.name not in ALLOWED_PORT_NAMES:
            logger.info("Ignoring connection from unknown port", extra={"port_name": port.name})
            return None

        tab_key = tab_key_for(port)
        previous = self._connections.get(tab_key)
        if previous is not None:
            previous.disconnect()

        self._ports[tab_key] = port
        connection = PortConnection(self, tab_key, port)
        self._connections[tab_key] = connection
        logger.info("Port connected", extra={"port_name": port.name, "tab_key": tab_key})
        return connection

    def _detach(self, connection: PortConnection) -> None:
        if self._connections.get(connection.tab_key) is connection:
            del self._connections[connection.tab_key]
            self._ports.pop(connection.tab_key, None)
            logger.info("Port disconnected", extra={"tab_key": connection.tab_key})

    def remove_tab(self, tab_id: int) -> None:
        """Drop the port of a closed tab; called by transports that see tab events."""

        connection = self._connections.get(tab_id)
        if connection is not None:
            connection.disconnect()
        else:
            self._ports.pop(tab_id, None)

    async def aclose(self) -> None:
        for connection in list(self._connections.values()):
            await connection.aclose()
        self._ports.clear()

    def track_tab_url(self, tab_id: int, url: str | None) -> str | None:
        if not url:
            return None
        match = self._project_url.match(url)
        if match is None:
            return None
        self.project_id = match.group(1)
        logger.debug("Tracked project id", extra={"tab_id": tab_id, "project_id": self.project_id})
        return self.project_id

    async def handle_storage_change(self, keys: Iterable[str], namespace: str) -> bool:
        if namespace != SETTINGS_NAMESPACE or not SETTINGS_KEYS.intersection(keys):
            return False
        logger.info("Account settings changed; reinitializing")
        await self._backend.reinitialize()
        return True

    def broadcast(self, status: UploadStatus) -> None:
        envelope = status_envelope(status)
        for port in list(self._ports.values()):
            self._send(port, envelope)

    def _send(self, port: Port, envelope: dict[str, Any]) -> None:
        try:
            port.post_message(envelope)
        except Exception:
            logger.exception("Failed to post message", extra={"port_name": port.name})

    async def dispatch(self, tab_key: int, raw: Any, *, port: Port | None = None) -> None:
        """Handle one inbound message; failures are reported to the sending port only."""

        port = port or self._ports.get(tab_key)
        if port is None:
            logger.warning("Message from unregistered tab", extra={"tab_key": tab_key})
            return

        message_type = raw.get("type") if isinstance(raw, dict) else None
        try:
            message = parse_message(raw)
            if message is None:
                logger.warning("Unknown message type", extra={"message_type": message_type})
                return
            await self._handle(port, message)
        except Exception as exc:
            logger.error(
                "Error handling message",
                extra={"message_type": message_type, "tab_key": tab_key, "error": str(exc)},
            )
            self._send(port, status_envelope(UploadStatus(status="error", message=str(exc) or type(exc).__name__)))

    async def _handle(self, port: Port, message: Any) -> None:
        if isinstance(message, ZipDataMessage):
            status = await self._backend.handle_upload(message.data, message.project_id or self.project_id)
            self._send(port, status_envelope(status))
        elif isinstance(message, SetCommitMessage):
            self._backend.set_commit_message(message.data.message)
        elif isinstance(message, OpenSettings):
            await self._backend.open_settings()
        elif isinstance(message, ImportPrivateRepo):
            await self._backend.import_private_repo(message.data.repo_name, message.data.branch)
        elif isinstance(message, DeleteTempRepo):
            await self._backend.cleanup_temp_repos(force=True)
        elif isinstance(message, DebugMessage):
            logger.info("Debug message from %s: %s", port.name, message.message)
        elif isinstance(message, ContentScriptReady):
            logger.info("Content script ready", extra={"port_name": port.name})


__all__ = [
    "ALLOWED_PORT_NAMES",
    "BufferedPort",
    "POPUP_TAB_KEY",
    "Port",
    "PortConnection",
    "PortRouter",
    "RouterBackend",
    "SETTINGS_NAMESPACE",
    "tab_key_for",
]
