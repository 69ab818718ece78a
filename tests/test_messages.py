import pytest

from pushbridge.background.messages import (
    DeleteTempRepo,
    ImportPrivateRepo,
    MessageValidationError,
    SetCommitMessage,
    UploadStatus,
    ZipDataMessage,
    parse_message,
    status_envelope,
)


def test_parse_flat_zip_data() -> None:
    message = parse_message({"type": "ZIP_DATA", "data": "UEsDBA==", "projectId": "abc"})

    assert isinstance(message, ZipDataMessage)
    assert message.data == "UEsDBA=="
    assert message.project_id == "abc"


def test_parse_nested_zip_data() -> None:
    message = parse_message({"type": "ZIP_DATA", "data": {"data": "UEsDBA==", "projectId": "abc"}})

    assert isinstance(message, ZipDataMessage)
    assert message.project_id == "abc"


def test_parse_import_request() -> None:
    message = parse_message({"type": "IMPORT_PRIVATE_REPO", "data": {"repoName": "my-app", "branch": "dev"}})

    assert isinstance(message, ImportPrivateRepo)
    assert message.data.repo_name == "my-app"
    assert message.data.branch == "dev"


def test_parse_commit_message_and_no_data_variants() -> None:
    commit = parse_message({"type": "SET_COMMIT_MESSAGE", "data": {"message": "feat: x"}})
    delete = parse_message({"type": "DELETE_TEMP_REPO"})

    assert isinstance(commit, SetCommitMessage)
    assert commit.data.message == "feat: x"
    assert isinstance(delete, DeleteTempRepo)


@pytest.mark.parametrize("raw", [{"type": "HEARTBEAT"}, {"data": 1}, "ZIP_DATA", None])
def test_unknown_messages_parse_to_none(raw) -> None:
    assert parse_message(raw) is None


def test_known_type_with_bad_payload_raises() -> None:
    with pytest.raises(MessageValidationError) as excinfo:
        parse_message({"type": "IMPORT_PRIVATE_REPO", "data": {}})

    assert "IMPORT_PRIVATE_REPO" in str(excinfo.value)


def test_status_envelope_omits_missing_progress() -> None:
    envelope = status_envelope(UploadStatus(status="error", message="nope"))

    assert envelope == {"type": "UPLOAD_STATUS", "status": {"status": "error", "message": "nope"}}
