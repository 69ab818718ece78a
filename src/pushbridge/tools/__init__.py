"""Tool registration for the pushbridge MCP server."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastmcp import Context, FastMCP

from ..background import BackgroundService
from ..storage import OPERATION_STATUSES


@dataclass(slots=True)
class ToolHandles:
    import_private_repo: Any
    cleanup_mirrors: Any
    list_mirrors: Any
    list_operations: Any
    upload_archive: Any
    set_commit_message: Any
    send_port_message: Any
    reload_settings: Any


def register_tools(server: FastMCP, *, service: BackgroundService) -> ToolHandles:
    """Register pushbridge's MCP tools on the server."""

    async def _import_private_repo(
        repo_name: str,
        branch: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Mirror a private repository publicly and open it in the target tool."""

        repo_name = repo_name.strip()
        if not repo_name:
            raise ValueError("repo_name must not be empty")

        result = await service.import_private_repo(repo_name, branch or None)
        if result is None:
            failed = [
                op
                for op in service.ledger.list_operations("import")
                if op.status == "failed" and op.metadata.get("sourceRepo") == repo_name
            ]
            error = failed[-1].error if failed else "Import failed"
            _emit_log(context, "warning", "Import failed", extra={"repo_name": repo_name, "error": error})
            return {"status": "failed", "repo_name": repo_name, "error": error}

        _emit_log(
            context,
            "info",
            "Imported private repository",
            extra={"repo_name": repo_name, "mirror_repo": result.mirror_repo},
        )
        return {"status": "completed", **result.to_dict()}

    async def _cleanup_mirrors(force: bool = False, context: Context | None = None) -> dict[str, Any]:
        report = await service.cleanup_temp_repos(force=force)
        if report is None:
            return {"status": "failed", "force": force}
        _emit_log(context, "info", "Cleanup pass finished", extra={"force": force, **report.to_dict()})
        return {"status": "skipped" if report.skipped else "completed", "force": force, **report.to_dict()}

    async def _list_mirrors() -> dict[str, Any]:
        stored = await service.mirror_store.get_all()
        if not isinstance(stored, list):
            return {"count": 0, "mirrors": [], "corrupted": True, "raw": repr(stored)[:200]}
        records = await service.mirror_store.load_records()
        return {
            "count": len(records),
            "mirrors": [record.to_payload() for record in records],
            "corrupted": False,
            "cleanup_running": service.scheduler.is_running,
        }

    def _list_operations(operation_type: str | None = None, status: str | None = None) -> dict[str, Any]:
        if status is not None and status not in OPERATION_STATUSES:
            raise ValueError(f"Invalid status '{status}'. Must be one of {sorted(OPERATION_STATUSES)}")
        operations = service.ledger.list_operations(operation_type)
        if status is not None:
            operations = [op for op in operations if op.status == status]
        return {"count": len(operations), "operations": [op.to_dict() for op in operations]}

    async def _upload_archive(
        archive_base64: str,
        project_id: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        status = await service.handle_upload(archive_base64, project_id or service.router.project_id)
        _emit_log(
            context,
            "info" if status.status == "success" else "warning",
            "Archive upload finished",
            extra={"project_id": project_id, "status": status.status},
        )
        return status.model_dump(exclude_none=True)

    def _set_commit_message(message: str) -> dict[str, Any]:
        service.set_commit_message(message)
        return {"pending_commit_message": service.uploads.pending_commit_message}

    async def _send_port_message(
        message: dict[str, Any],
        tab_url: str | None = None,
        context: Context | None = None,
    ) -> dict[str, Any]:
        """Route one UI message through the popup port and return what it was sent back."""

        replies = await service.send_port_message(message, tab_url=tab_url)
        _emit_log(
            context,
            "info",
            "Port message handled",
            extra={"message_type": message.get("type"), "replies": len(replies)},
        )
        return {"replies": replies, "project_id": service.router.project_id}

    async def _reload_settings(context: Context | None = None) -> dict[str, Any]:
        reloaded = await service.reload_settings()
        account = service.account
        configured = bool(account and account.is_complete)
        _emit_log(context, "info", "Account settings reloaded", extra={"configured": configured})
        return {"reloaded": reloaded, "configured": configured}

    tool_import = server.tool(
        name="import_private_repo",
        description="Create a temporary public mirror of a private repository and open it in Bolt.",
    )(_import_private_repo)

    tool_cleanup = server.tool(
        name="cleanup_mirrors",
        description="Delete expired temporary mirrors, or every known mirror when force is set.",
    )(_cleanup_mirrors)

    tool_list_mirrors = server.tool(
        name="list_mirrors",
        description="List temporary mirrors awaiting cleanup.",
    )(_list_mirrors)

    tool_list_operations = server.tool(
        name="list_operations",
        description="List tracked import and push operations with their status.",
    )(_list_operations)

    tool_upload = server.tool(
        name="upload_archive",
        description="Push a base64-encoded project ZIP archive to the configured GitHub repository.",
    )(_upload_archive)

    tool_commit_message = server.tool(
        name="set_commit_message",
        description="Set the commit message used by the next archive upload.",
    )(_set_commit_message)

    tool_send_port_message = server.tool(
        name="send_port_message",
        description="Send a popup message (ZIP_DATA, IMPORT_PRIVATE_REPO, DELETE_TEMP_REPO, ...) to the background router.",
    )(_send_port_message)

    tool_reload_settings = server.tool(
        name="reload_settings",
        description="Re-read the account settings file and rebuild the GitHub services.",
    )(_reload_settings)

    return ToolHandles(
        import_private_repo=tool_import,
        cleanup_mirrors=tool_cleanup,
        list_mirrors=tool_list_mirrors,
        list_operations=tool_list_operations,
        upload_archive=tool_upload,
        set_commit_message=tool_commit_message,
        send_port_message=tool_send_port_message,
        reload_settings=tool_reload_settings,
    )


__all__ = ["register_tools", "ToolHandles"]

logger = logging.getLogger(__name__)


def _emit_log(
    context: Context | None,
    level: str,
    message: str,
    *,
    extra: dict[str, Any] | None = None,
) -> None:
    """Best-effort logging that prefers the MCP context logger when available."""

    payload = extra or {}

    if context is not None:
        ctx_logger = getattr(context, "logger", None)
        if ctx_logger is not None:
            log_method = getattr(ctx_logger, level, None)
            if callable(log_method):
                log_method(message, extra=payload)
                return

    fallback = getattr(logger, level, logger.info)
    fallback(message, extra=payload)
