"""Process-wide registry wiring storage, hosting and the background workflows."""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

from ..account import SETTINGS_KEYS, AccountSettings, AccountSettingsError, AccountSettingsLoader
from ..config import PushbridgeSettings
from ..hosting import GitHubClient, HostingClient, ZipArchivePusher
from ..storage import ChromaStore, LocalStorage, MirrorRecord, MirrorStore, OperationLedger
from .cleanup import CleanupReport, CleanupScheduler
from .imports import ImportResult, ImportWorkflow
from .messages import UploadStatus
from .router import POPUP_TAB_KEY, SETTINGS_NAMESPACE, BufferedPort, PortConnection, PortRouter
from .tabs import BrowserTabOpener, TabOpener
from .uploads import ArchiveProcessor, UploadOrchestrator
from .watcher import SettingsFileWatcher

logger = logging.getLogger(__name__)

TEMP_REPO_MANAGER_MISSING = "Temp repo manager not initialized"
CLIENT_PORT_NAME = "popup"

ClientFactory = Callable[[AccountSettings], HostingClient]
ProcessorFactory = Callable[[HostingClient, AccountSettings], ArchiveProcessor]


class BackgroundService:
    """Registry built once at startup and handed to every surface that needs it.

    The account-dependent parts (hosting client, archive processor, import
    workflow) are rebuilt by :meth:`reinitialize` whenever settings change;
    the store, ledger, router and scheduler live for the whole process.
    """

    def __init__(
        self,
        settings: PushbridgeSettings,
        *,
        storage: LocalStorage | None = None,
        chroma_store: ChromaStore | None = None,
        account_loader: AccountSettingsLoader | None = None,
        client_factory: ClientFactory | None = None,
        processor_factory: ProcessorFactory | None = None,
        tab_opener: TabOpener | None = None,
        settings_opener: Callable[[], Awaitable[None]] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.storage = storage or LocalStorage(settings.storage_path)
        self.chroma_store = chroma_store
        self.account_loader = account_loader or AccountSettingsLoader(settings.account_settings_path)
        self.mirror_store = MirrorStore(self.storage)
        self.ledger = OperationLedger(chroma_store)
        self.router = PortRouter(self, target_host=settings.target_tool_host)
        self.scheduler = CleanupScheduler(
            None,
            self.mirror_store,
            max_age=settings.mirror_max_age,
            interval=settings.cleanup_interval,
            max_attempts=settings.cleanup_max_attempts,
            clock=clock,
            on_abandon=self._record_abandoned,
        )
        self.uploads = UploadOrchestrator(
            None,
            ledger=self.ledger,
            timeout=settings.upload_timeout,
            default_commit_message=settings.default_commit_message,
        )
        self.watcher = SettingsFileWatcher(
            self.account_loader,
            self._on_settings_file_change,
            interval=settings.settings_poll_interval,
        )
        self.client_port = BufferedPort(CLIENT_PORT_NAME)
        self._client_connection: PortConnection | None = None
        self.account: AccountSettings | None = None
        self.client: HostingClient | None = None
        self.imports: ImportWorkflow | None = None
        self._client_factory = client_factory or self._default_client
        self._processor_factory = processor_factory or self._default_processor
        self._tab_opener = tab_opener or BrowserTabOpener()
        self._settings_opener = settings_opener
        self._clock = clock

    def _default_client(self, account: AccountSettings) -> HostingClient:
        return GitHubClient(
            account.github_token,
            base_url=self.settings.api_url,
            timeout=self.settings.request_timeout,
        )

    def _default_processor(self, client: HostingClient, account: AccountSettings) -> ArchiveProcessor:
        return ZipArchivePusher(client, account, on_progress=self._report_upload_progress)

    async def _report_upload_progress(self, message: str, progress: int) -> None:
        self.router.broadcast(UploadStatus(status="uploading", message=message, progress=progress))

    async def initialize(self) -> None:
        await self._build()
        self.watcher.snapshot(self.account)
        self.watcher.start()
        self._client_connection = self.router.register(self.client_port)
        records = await self.mirror_store.load_records()
        if records:
            logger.info("Resuming cleanup for known mirrors", extra={"mirrors": len(records)})
            self.scheduler.start()

    async def reinitialize(self) -> None:
        await self._close_client()
        await self._build()
        self.watcher.snapshot(self.account)

    async def _on_settings_file_change(self, keys: frozenset[str]) -> None:
        await self.router.handle_storage_change(keys, SETTINGS_NAMESPACE)

    async def reload_settings(self) -> bool:
        """Re-read the account settings as if every settings key had changed."""

        return await self.router.handle_storage_change(SETTINGS_KEYS, SETTINGS_NAMESPACE)

    async def send_port_message(self, raw: Any, *, tab_url: str | None = None) -> list[dict[str, Any]]:
        """Feed one message through the client port and collect what was posted back to it."""

        connection = self._client_connection
        if connection is None or connection.closed:
            connection = self.router.register(self.client_port)
            if connection is None:
                raise RuntimeError(f"Port {CLIENT_PORT_NAME!r} was rejected")
            self._client_connection = connection
        if tab_url:
            self.router.track_tab_url(POPUP_TAB_KEY, tab_url)
        connection.deliver(raw)
        await connection.drain()
        return self.client_port.take()

    async def _build(self) -> None:
        try:
            account = self.account_loader.load()
        except AccountSettingsError as exc:
            logger.error("Failed to load account settings", extra={"error": str(exc)})
            account = None

        self.account = account
        if account is None or not account.is_complete:
            logger.warning(
                "Account settings incomplete; hosting features disabled",
                extra={"path": str(self.account_loader.path)},
            )
            self.client = None
            self.imports = None
            self.scheduler.client = None
            self.uploads.processor = None
            return

        client = self._client_factory(account)
        self.client = client
        self.scheduler.client = client
        self.uploads.processor = self._processor_factory(client, account)
        self.imports = ImportWorkflow(
            client,
            self.mirror_store,
            self.ledger,
            self.scheduler,
            self._tab_opener,
            self.router.broadcast,
            owner=account.repo_owner,
            auth_method=account.auth_method,
            target_host=self.settings.target_tool_host,
            hosting_host=self.settings.hosting_host,
            clock=self._clock,
            batch_size=self.settings.copy_batch_size,
        )
        logger.info(
            "Hosting services initialized",
            extra={"owner": account.repo_owner, "auth_method": account.auth_method.value},
        )

    async def _close_client(self) -> None:
        client, self.client = self.client, None
        aclose = getattr(client, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except Exception:
            logger.exception("Failed to close hosting client")

    async def shutdown(self) -> None:
        await self.watcher.stop()
        self.scheduler.stop()
        await self.router.aclose()
        await self._close_client()

    async def handle_upload(self, data: str, project_id: str | None) -> UploadStatus:
        return await self.uploads.process(data, project_id)

    def set_commit_message(self, message: str) -> None:
        self.uploads.set_commit_message(message)

    async def import_private_repo(self, repo_name: str, branch: str | None = None) -> ImportResult | None:
        if self.imports is None:
            raise RuntimeError(TEMP_REPO_MANAGER_MISSING)
        return await self.imports.handle_private_repo_import(repo_name, branch)

    async def cleanup_temp_repos(self, force: bool = False) -> CleanupReport | None:
        try:
            return await self.scheduler.run_cleanup_pass(force=force)
        except Exception:
            logger.exception("Cleanup of temporary repositories failed", extra={"force": force})
            return None

    async def open_settings(self) -> None:
        if self._settings_opener is not None:
            await self._settings_opener()
            return
        logger.info(
            "Account settings are read from %s",
            self.account_loader.path,
            extra={"path": str(self.account_loader.path)},
        )

    def _record_abandoned(self, record: MirrorRecord, error: BaseException) -> None:
        if self.chroma_store is None:
            return
        body: dict[str, Any] = {**record.to_payload(), "error": str(error)}
        self.chroma_store.record_event(
            session_id=f"mirror::{record.mirror_repo}",
            event_type="mirror_abandoned",
            body=body,
            metadata={
                "mirror_repo": record.mirror_repo,
                "source_repo": record.source_repo,
                "owner": record.owner,
                "attempts": record.cleanup_attempts,
                "operation_id": record.operation_id,
            },
        )


__all__ = ["BackgroundService", "CLIENT_PORT_NAME", "TEMP_REPO_MANAGER_MISSING"]
