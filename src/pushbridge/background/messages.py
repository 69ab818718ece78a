"""Message variants exchanged with UI surfaces over a port."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, model_validator


class MessageValidationError(RuntimeError):
    """Raised when a message with a known type carries an invalid payload."""


class _Message(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ZipDataMessage(_Message):
    """Archive upload request: base64 archive plus an optional project id."""

    type: Literal["ZIP_DATA"]
    data: str = Field(min_length=1)
    project_id: str | None = Field(default=None, alias="projectId")

    @model_validator(mode="before")
    @classmethod
    def _flatten_nested_payload(cls, value: Any) -> Any:
        if isinstance(value, dict) and isinstance(value.get("data"), dict):
            nested = value["data"]
            flattened = {key: item for key, item in value.items() if key != "data"}
            flattened["data"] = nested.get("data")
            if nested.get("projectId") is not None:
                flattened["projectId"] = nested["projectId"]
            return flattened
        return value


class CommitMessageData(_Message):
    message: str = ""


class SetCommitMessage(_Message):
    type: Literal["SET_COMMIT_MESSAGE"]
    data: CommitMessageData = Field(default_factory=CommitMessageData)


class OpenSettings(_Message):
    type: Literal["OPEN_SETTINGS"]


class ImportRepoData(_Message):
    repo_name: str = Field(alias="repoName", min_length=1)
    branch: str | None = None


class ImportPrivateRepo(_Message):
    type: Literal["IMPORT_PRIVATE_REPO"]
    data: ImportRepoData


class DeleteTempRepo(_Message):
    type: Literal["DELETE_TEMP_REPO"]


class DebugMessage(_Message):
    type: Literal["DEBUG"]
    message: str | None = None


class ContentScriptReady(_Message):
    type: Literal["CONTENT_SCRIPT_READY"]


PortMessage = Annotated[
    Union[
        ZipDataMessage,
        SetCommitMessage,
        OpenSettings,
        ImportPrivateRepo,
        DeleteTempRepo,
        DebugMessage,
        ContentScriptReady,
    ],
    Field(discriminator="type"),
]

_PORT_MESSAGE_ADAPTER: TypeAdapter[PortMessage] = TypeAdapter(PortMessage)

MESSAGE_TYPES = frozenset(
    {
        "ZIP_DATA",
        "SET_COMMIT_MESSAGE",
        "OPEN_SETTINGS",
        "IMPORT_PRIVATE_REPO",
        "DELETE_TEMP_REPO",
        "DEBUG",
        "CONTENT_SCRIPT_READY",
    }
)


def parse_message(raw: Any) -> PortMessage | None:
    """Parse an inbound message.

    Returns ``None`` for anything whose ``type`` is not a known variant and
    raises :class:`MessageValidationError` when a known variant is malformed.
    """

    if not isinstance(raw, dict) or raw.get("type") not in MESSAGE_TYPES:
        return None
    try:
        return _PORT_MESSAGE_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise MessageValidationError(f"Invalid {raw['type']} message: {exc.errors()[0]['msg']}") from exc


class UploadStatus(BaseModel):
    """Status payload broadcast to UI surfaces."""

    status: Literal["uploading", "success", "error"]
    message: str = ""
    progress: int | None = None


def status_envelope(status: UploadStatus) -> dict[str, Any]:
    return {"type": "UPLOAD_STATUS", "status": status.model_dump(exclude_none=True)}


__all__ = [
    "CommitMessageData",
    "ContentScriptReady",
    "DebugMessage",
    "DeleteTempRepo",
    "ImportPrivateRepo",
    "ImportRepoData",
    "MESSAGE_TYPES",
    "MessageValidationError",
    "OpenSettings",
    "PortMessage",
    "SetCommitMessage",
    "UploadStatus",
    "ZipDataMessage",
    "parse_message",
    "status_envelope",
]
