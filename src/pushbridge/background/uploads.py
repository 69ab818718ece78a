"""Archive upload handling with a hard deadline."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import uuid
from typing import Protocol

from ..hosting import HostingApiError
from ..storage import OperationLedger
from .errors import describe_error
from .messages import UploadStatus

logger = logging.getLogger(__name__)

DEFAULT_COMMIT_MESSAGE = "Commit from Bolt to GitHub"
UPLOAD_TIMEOUT_SECONDS = 120.0

NOT_INITIALIZED_MESSAGE = "GitHub service is not initialized. Please check your GitHub settings."
MISSING_PROJECT_MESSAGE = "Project ID is not set."
PROCESSING_FAILED_MESSAGE = (
    "Failed to process ZIP data. Please try reloading the page. "
    "If the issue persists, please open a GitHub issue."
)
TIMEOUT_MESSAGE = "Processing ZIP file timed out"


class ArchiveProcessor(Protocol):
    async def process_zip_file(self, archive: bytes, project_id: str, commit_message: str) -> None:
        ...


class UploadOrchestrator:
    """Decode an uploaded archive and hand it to the processor under a deadline.

    An expired call is abandoned rather than cancelled; the task stays
    referenced until it finishes so its outcome is still logged.
    """

    def __init__(
        self,
        processor: ArchiveProcessor | None,
        *,
        ledger: OperationLedger,
        timeout: float = UPLOAD_TIMEOUT_SECONDS,
        default_commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ) -> None:
        self._processor = processor
        self._ledger = ledger
        self._timeout = timeout
        self._default_commit_message = default_commit_message
        self._pending_commit_message = default_commit_message
        self._abandoned: set[asyncio.Task[None]] = set()

    @property
    def processor(self) -> ArchiveProcessor | None:
        return self._processor

    @processor.setter
    def processor(self, processor: ArchiveProcessor | None) -> None:
        self._processor = processor

    @property
    def pending_commit_message(self) -> str:
        return self._pending_commit_message

    @property
    def abandoned_tasks(self) -> int:
        return len(self._abandoned)

    def set_commit_message(self, message: str | None) -> None:
        if message and message.strip():
            self._pending_commit_message = message

    async def process(self, base64_data: str, project_id: str | None) -> UploadStatus:
        if self._processor is None:
            return UploadStatus(status="error", message=NOT_INITIALIZED_MESSAGE)
        if not project_id:
            return UploadStatus(status="error", message=MISSING_PROJECT_MESSAGE)

        try:
            archive = base64.b64decode(base64_data, validate=True)
        except (binascii.Error, ValueError) as exc:
            logger.error("Failed to decode archive payload", extra={"project_id": project_id, "error": str(exc)})
            return UploadStatus(status="error", message=PROCESSING_FAILED_MESSAGE)

        operation_id = f"push-{uuid.uuid4().hex}"
        commit_message = self._pending_commit_message
        self._ledger.start_operation(
            "push",
            operation_id,
            f"Push project {project_id}",
            {"projectId": project_id, "archiveBytes": len(archive)},
        )

        task = asyncio.get_running_loop().create_task(
            self._processor.process_zip_file(archive, project_id, commit_message)
        )
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._timeout)
        except asyncio.TimeoutError:
            self._abandon(task, operation_id)
            self._ledger.fail_operation(operation_id, TIMEOUT_MESSAGE)
            logger.error("Archive processing timed out", extra={"project_id": project_id, "timeout": self._timeout})
            return UploadStatus(status="error", message=TIMEOUT_MESSAGE)
        except HostingApiError as exc:
            message = f"GitHub Error: {describe_error(exc)}"
            self._ledger.fail_operation(operation_id, message)
            logger.error("Archive push rejected", extra={"project_id": project_id, "error": str(exc)})
            return UploadStatus(status="error", message=message)
        except Exception as exc:
            self._ledger.fail_operation(operation_id, str(exc))
            logger.exception("Archive processing failed", extra={"project_id": project_id})
            return UploadStatus(status="error", message=PROCESSING_FAILED_MESSAGE)

        self._ledger.complete_operation(operation_id)
        self._pending_commit_message = self._default_commit_message
        logger.info("Archive pushed", extra={"project_id": project_id, "operation_id": operation_id})
        return UploadStatus(status="success", message="Upload completed successfully", progress=100)

    def _abandon(self, task: asyncio.Task[None], operation_id: str) -> None:
        self._abandoned.add(task)

        def _finished(done: asyncio.Task[None]) -> None:
            self._abandoned.discard(done)
            if done.cancelled():
                return
            error = done.exception()
            if error is None:
                logger.warning("Abandoned archive upload finished late", extra={"operation_id": operation_id})
            else:
                logger.warning(
                    "Abandoned archive upload failed",
                    extra={"operation_id": operation_id, "error": str(error)},
                )

        task.add_done_callback(_finished)


__all__ = [
    "ArchiveProcessor",
    "DEFAULT_COMMIT_MESSAGE",
    "MISSING_PROJECT_MESSAGE",
    "NOT_INITIALIZED_MESSAGE",
    "PROCESSING_FAILED_MESSAGE",
    "TIMEOUT_MESSAGE",
    "UPLOAD_TIMEOUT_SECONDS",
    "UploadOrchestrator",
]
