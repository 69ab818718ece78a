"""Data models for persistent tracking."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class AuthMethod(str, Enum):
    PAT = "pat"
    HOST_APP = "host_app"
    UNKNOWN = "unknown"


@dataclass(slots=True)
class MirrorRecord:
    """A disposable public mirror awaiting cleanup.

    Persisted with the camelCase keys of the storage layout shared with the
    UI surfaces. ``cleanup_attempts`` is only written once a delete failed.
    """

    source_repo: str
    mirror_repo: str
    owner: str
    branch: str
    created_at: float
    auth_method: AuthMethod = AuthMethod.UNKNOWN
    operation_id: str = ""
    cleanup_attempts: int = 0

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "sourceRepo": self.source_repo,
            "mirrorRepo": self.mirror_repo,
            "owner": self.owner,
            "branch": self.branch,
            "createdAt": self.created_at,
            "authMethod": self.auth_method.value,
            "operationId": self.operation_id,
        }
        if self.cleanup_attempts:
            payload["cleanupAttempts"] = self.cleanup_attempts
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "MirrorRecord":
        try:
            auth_method = AuthMethod(payload.get("authMethod", AuthMethod.UNKNOWN.value))
        except ValueError:
            auth_method = AuthMethod.UNKNOWN
        return cls(
            source_repo=str(payload["sourceRepo"]),
            mirror_repo=str(payload["mirrorRepo"]),
            owner=str(payload["owner"]),
            branch=str(payload.get("branch") or "main"),
            created_at=float(payload["createdAt"]),
            auth_method=auth_method,
            operation_id=str(payload.get("operationId") or ""),
            cleanup_attempts=int(payload.get("cleanupAttempts") or 0),
        )


__all__ = ["AuthMethod", "MirrorRecord"]
