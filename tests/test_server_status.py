from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

from pushbridge.config import PushbridgeSettings
from pushbridge.server import build_status_payload, create_server, open_chroma_store
from pushbridge.storage import ChromaUnavailableError, MirrorRecord


class StubChromaStore:
    last_instance: "StubChromaStore | None" = None

    def __init__(self, *_, **__):
        self.events: list[dict[str, object]] = []
        StubChromaStore.last_instance = self

    def ping(self) -> bool:
        return True

    def record_event(self, *, session_id, event_type, body, metadata):
        event = {
            "session_id": session_id,
            "event_type": event_type,
            "body": body,
            "metadata": metadata,
            "timestamp": datetime.now(timezone.utc),
        }
        self.events.append(event)
        return SimpleNamespace(id=f"event-{len(self.events)}", timestamp=event["timestamp"])


def _settings(monkeypatch, tmp_path: Path) -> PushbridgeSettings:
    monkeypatch.setenv("PUSHBRIDGE_ACCOUNT_PATH", str(tmp_path / "account.yaml"))
    monkeypatch.setenv("PUSHBRIDGE_STORAGE_PATH", str(tmp_path / "local.json"))
    monkeypatch.setenv("CHROMA_PERSIST_PATH", str(tmp_path / "chroma"))
    return PushbridgeSettings()


def test_create_server_wires_service(monkeypatch, tmp_path: Path) -> None:
    settings = _settings(monkeypatch, tmp_path)
    monkeypatch.setattr("pushbridge.server.ChromaStore", StubChromaStore)

    def fake_register_tools(*_, **__):
        return SimpleNamespace(import_private_repo=None)

    monkeypatch.setattr("pushbridge.server.register_tools", fake_register_tools)

    server = create_server(settings)

    service = getattr(server, "service")
    assert service.chroma_store is StubChromaStore.last_instance
    assert getattr(server, "chroma_metadata")["available"] is True
    assert getattr(server, "tool_handles").import_private_repo is None


def test_open_chroma_store_reports_unavailable(monkeypatch, tmp_path: Path) -> None:
    settings = _settings(monkeypatch, tmp_path)

    class MissingChroma:
        def __init__(self, *_, **__):
            raise ChromaUnavailableError("chromadb is not installed")

    monkeypatch.setattr("pushbridge.server.ChromaStore", MissingChroma)

    store, metadata = open_chroma_store(settings)

    assert store is None
    assert metadata["available"] is False
    assert metadata["error"] == "chromadb is not installed"


def test_status_payload_summarizes_service(monkeypatch, tmp_path: Path) -> None:
    settings = _settings(monkeypatch, tmp_path)
    monkeypatch.setattr("pushbridge.server.ChromaStore", StubChromaStore)
    monkeypatch.setattr("pushbridge.server.register_tools", lambda *_, **__: None)

    server = create_server(settings)
    service = getattr(server, "service")

    async def scenario():
        await service.mirror_store.add(
            MirrorRecord(
                source_repo="a",
                mirror_repo="temp-a",
                owner="octocat",
                branch="main",
                created_at=100.0,
                cleanup_attempts=1,
            )
        )
        service.ledger.start_operation("push", "push-1", "Push project")
        service.ledger.fail_operation("push-1", "boom")
        return await build_status_payload(service, chroma_metadata=getattr(server, "chroma_metadata"))

    payload = asyncio.run(scenario())

    assert payload["account"]["configured"] is False
    assert payload["mirrors"] == {
        "count": 1,
        "corrupted": False,
        "oldest_created_at": 100.0,
        "pending_retries": 1,
    }
    assert payload["cleanup"]["running"] is False
    assert payload["operations"] == {"count": 1, "status_counts": {"failed": 1}}
    assert payload["uploads"]["pending_commit_message"] == "Commit from Bolt to GitHub"
    assert payload["storage"]["chroma"]["available"] is True
    assert [event["event_type"] for event in StubChromaStore.last_instance.events] == [
        "operation_started",
        "operation_failed",
    ]
