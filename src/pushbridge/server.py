"""FastMCP server bootstrap for pushbridge."""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from fastmcp import Context, FastMCP

from . import __version__
from .background import BackgroundService
from .config import PushbridgeSettings, get_settings
from .storage import ChromaStore, ChromaUnavailableError
from .tools import register_tools


def configure_logging(level: str) -> None:
    """Configure root logging for the pushbridge server."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def open_chroma_store(settings: PushbridgeSettings) -> tuple[ChromaStore | None, dict[str, Any]]:
    """Open the event store, reporting why it is unavailable instead of failing."""

    metadata: dict[str, Any] = {
        "available": False,
        "path": str(settings.chroma_persist_path),
        "collection": "pushbridge_events",
        "error": None,
    }
    try:
        store = ChromaStore(settings.chroma_persist_path)
        store.ping()
    except ChromaUnavailableError as exc:
        metadata["error"] = str(exc)
        return None, metadata
    metadata["available"] = True
    return store, metadata


async def build_status_payload(
    service: BackgroundService,
    *,
    chroma_metadata: dict[str, Any] | None = None,
    request_id: Any = None,
) -> dict[str, Any]:
    stored = await service.mirror_store.get_all()
    corrupted = not isinstance(stored, list)
    records = [] if corrupted else await service.mirror_store.load_records()

    status_counts: dict[str, int] = {}
    for operation in service.ledger.list_operations():
        status_counts[operation.status] = status_counts.get(operation.status, 0) + 1

    account = service.account
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "server_version": __version__,
        "log_level": service.settings.log_level,
        "account": {
            "configured": bool(account and account.is_complete),
            "owner": account.repo_owner if account else None,
            "auth_method": account.auth_method.value if account else None,
            "path": str(service.account_loader.path),
            "watching": service.watcher.is_running,
        },
        "mirrors": {
            "count": len(records),
            "corrupted": corrupted,
            "oldest_created_at": min((record.created_at for record in records), default=None),
            "pending_retries": sum(1 for record in records if record.cleanup_attempts),
        },
        "cleanup": {
            "running": service.scheduler.is_running,
            "interval": service.settings.cleanup_interval,
            "max_age": service.settings.mirror_max_age,
            "max_attempts": service.settings.cleanup_max_attempts,
        },
        "ports": sorted(service.router.ports.keys()),
        "project_id": service.router.project_id,
        "operations": {
            "count": sum(status_counts.values()),
            "status_counts": status_counts,
        },
        "uploads": {
            "pending_commit_message": service.uploads.pending_commit_message,
            "abandoned_tasks": service.uploads.abandoned_tasks,
        },
        "storage": {"chroma": chroma_metadata or {"available": service.chroma_store is not None}},
        "request_id": request_id,
    }


def create_server(
    settings: Optional[PushbridgeSettings] = None,
    service: BackgroundService | None = None,
) -> FastMCP:
    """Instantiate the FastMCP server around a background service registry."""

    settings = settings or get_settings()

    if service is None:
        chroma_store, chroma_metadata = open_chroma_store(settings)
        service = BackgroundService(settings, chroma_store=chroma_store)
    else:
        chroma_metadata = {"available": service.chroma_store is not None, "error": None}

    @asynccontextmanager
    async def lifespan(_server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        await service.initialize()
        try:
            yield {"service": service}
        finally:
            await service.shutdown()

    server = FastMCP(
        name="pushbridge",
        version=__version__,
        instructions=(
            "pushbridge imports private GitHub repositories into Bolt through short-lived "
            "public mirrors and pushes Bolt project archives back to GitHub. Mirrors are "
            "deleted automatically shortly after they are opened."
        ),
        lifespan=lifespan,
    )

    handles = register_tools(server, service=service)

    @server.resource(
        "resource://pushbridge/status",
        name="pushbridge_status",
        title="pushbridge Status",
        description="Provides the current runtime status for the pushbridge background service.",
        mime_type="application/json",
        tags={"status", "health"},
    )
    async def status_resource(context: Context) -> str:
        """Return a JSON string summarizing mirrors, cleanup and operations."""

        payload = await build_status_payload(
            service,
            chroma_metadata=chroma_metadata,
            request_id=getattr(context, "request_id", None),
        )
        return json.dumps(payload)

    setattr(server, "service", service)
    setattr(server, "chroma_metadata", chroma_metadata)
    setattr(server, "tool_handles", handles)
    return server


def main() -> None:
    """Entry point for running the pushbridge server via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    server = create_server(settings)
    logging.getLogger(__name__).info(
        "Launching pushbridge server",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "chroma_available": getattr(server, "chroma_metadata", {}).get("available"),
        },
    )
    server.run()


if __name__ == "__main__":
    main()
