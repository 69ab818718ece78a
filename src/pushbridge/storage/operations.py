"""Operation ledger tracking the lifecycle of imports and pushes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from .chroma import ChromaStore

logger = logging.getLogger(__name__)

OPERATION_STATUSES = {"pending", "running", "completed", "failed"}


@dataclass(slots=True)
class Operation:
    id: str
    type: str
    status: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "description": self.description,
            "metadata": dict(self.metadata),
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class OperationLedger:
    """Keyed record of operations and their status transitions.

    Transitions are kept in memory and, when a :class:`ChromaStore` is
    attached, mirrored as events so diagnostics can replay them later.
    """

    def __init__(
        self,
        chroma_store: ChromaStore | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._chroma_store = chroma_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._operations: dict[str, Operation] = {}

    def start_operation(
        self,
        operation_type: str,
        operation_id: str,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> Operation:
        operation = Operation(
            id=operation_id,
            type=operation_type,
            status="running",
            description=description,
            metadata=dict(metadata or {}),
            started_at=self._clock(),
        )
        self._operations[operation_id] = operation
        self._record(operation, "operation_started")
        logger.info(
            "Operation started",
            extra={"operation_id": operation_id, "operation_type": operation_type},
        )
        return operation

    def complete_operation(self, operation_id: str, metadata: dict[str, Any] | None = None) -> Operation | None:
        operation = self._finish(operation_id, "completed", metadata=metadata)
        if operation is not None:
            self._record(operation, "operation_completed")
        return operation

    def fail_operation(
        self,
        operation_id: str,
        error: BaseException | str,
        metadata: dict[str, Any] | None = None,
    ) -> Operation | None:
        operation = self._finish(operation_id, "failed", metadata=metadata)
        if operation is not None:
            operation.error = str(error) or type(error).__name__
            self._record(operation, "operation_failed")
            logger.warning(
                "Operation failed",
                extra={"operation_id": operation_id, "error": operation.error},
            )
        return operation

    def get(self, operation_id: str) -> Operation | None:
        return self._operations.get(operation_id)

    def list_operations(self, operation_type: str | None = None) -> list[Operation]:
        operations = list(self._operations.values())
        if operation_type is not None:
            operations = [op for op in operations if op.type == operation_type]
        return operations

    def _finish(self, operation_id: str, status: str, *, metadata: dict[str, Any] | None) -> Operation | None:
        operation = self._operations.get(operation_id)
        if operation is None:
            logger.warning("Unknown operation", extra={"operation_id": operation_id, "status": status})
            return None
        operation.status = status
        operation.finished_at = self._clock()
        if metadata:
            operation.metadata.update(metadata)
        return operation

    def _record(self, operation: Operation, event_type: str) -> None:
        if self._chroma_store is None:
            return
        try:
            self._chroma_store.record_event(
                session_id=f"operation::{operation.id}",
                event_type=event_type,
                body=operation.to_dict(),
                metadata={
                    "operation_id": operation.id,
                    "operation_type": operation.type,
                    "status": operation.status,
                },
            )
        except Exception as exc:  # pragma: no cover - storage backend failure
            logger.warning(
                "Failed to persist operation event",
                extra={"operation_id": operation.id, "error": str(exc)},
            )


__all__ = ["Operation", "OperationLedger", "OPERATION_STATUSES"]
