from __future__ import annotations

import asyncio
import json
from pathlib import Path

from pushbridge.storage import STORAGE_KEY, AuthMethod, LocalStorage, MirrorRecord, MirrorStore


def _record(name: str, *, created_at: float = 1_700_000_000.0, attempts: int = 0) -> MirrorRecord:
    return MirrorRecord(
        source_repo="my-app",
        mirror_repo=name,
        owner="octocat",
        branch="main",
        created_at=created_at,
        auth_method=AuthMethod.PAT,
        operation_id="import-1",
        cleanup_attempts=attempts,
    )


def test_fresh_record_payload_omits_attempt_counter() -> None:
    payload = _record("temp-my-app-1-abcdef").to_payload()

    assert payload == {
        "sourceRepo": "my-app",
        "mirrorRepo": "temp-my-app-1-abcdef",
        "owner": "octocat",
        "branch": "main",
        "createdAt": 1_700_000_000.0,
        "authMethod": "pat",
        "operationId": "import-1",
    }
    assert _record("temp", attempts=2).to_payload()["cleanupAttempts"] == 2


def test_record_from_payload_tolerates_unknown_auth_method() -> None:
    record = MirrorRecord.from_payload(
        {"sourceRepo": "a", "mirrorRepo": "temp-a", "owner": "o", "createdAt": 5, "authMethod": "oauth"}
    )

    assert record.auth_method is AuthMethod.UNKNOWN
    assert record.branch == "main"
    assert record.cleanup_attempts == 0


def test_local_storage_in_memory_returns_copies() -> None:
    async def scenario() -> None:
        storage = LocalStorage()
        value = [{"a": 1}]
        await storage.set("key", value)
        value.append({"b": 2})

        loaded = await storage.get("key")
        assert loaded == [{"a": 1}]
        loaded.append("mutated")
        assert await storage.get("key") == [{"a": 1}]

        await storage.remove("key")
        assert await storage.get("key") is None

    asyncio.run(scenario())


def test_local_storage_file_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "local.json"

    async def scenario() -> None:
        storage = LocalStorage(path)
        assert await storage.get("missing") is None
        await storage.set("one", {"x": 1})
        await storage.set("two", [1, 2])
        await storage.remove("one")

        reopened = LocalStorage(path)
        assert await reopened.get("two") == [1, 2]
        assert await reopened.get("one") is None

    asyncio.run(scenario())

    assert json.loads(path.read_text(encoding="utf-8")) == {"two": [1, 2]}
    assert not path.with_suffix(".json.tmp").exists()


def test_get_all_defaults_to_empty_list() -> None:
    store = MirrorStore(LocalStorage())
    assert asyncio.run(store.get_all()) == []


def test_get_all_returns_corrupted_value_unchanged() -> None:
    async def scenario():
        storage = LocalStorage()
        await storage.set(STORAGE_KEY, "invalid-data-not-array")
        store = MirrorStore(storage)
        return await store.get_all(), await store.load_records()

    raw, records = asyncio.run(scenario())

    assert raw == "invalid-data-not-array"
    assert records == []


def test_write_replaces_corrupted_value(caplog) -> None:
    async def scenario():
        storage = LocalStorage()
        await storage.set(STORAGE_KEY, {"not": "a list"})
        store = MirrorStore(storage)
        await store.add(_record("temp-1"))
        return await storage.get(STORAGE_KEY)

    with caplog.at_level("WARNING"):
        stored = asyncio.run(scenario())

    assert [entry["mirrorRepo"] for entry in stored] == ["temp-1"]
    assert "non-list" in caplog.text


def test_malformed_entries_are_skipped() -> None:
    async def scenario():
        storage = LocalStorage()
        await storage.set(
            STORAGE_KEY,
            [_record("temp-ok").to_payload(), "garbage", {"mirrorRepo": "missing-fields"}],
        )
        return await MirrorStore(storage).load_records()

    records = asyncio.run(scenario())

    assert [record.mirror_repo for record in records] == ["temp-ok"]


def test_writes_keep_unparsable_entries() -> None:
    broken = {"mirrorRepo": "temp-x-1-abcdef", "owner": "octocat", "sourceRepo": "x", "createdAt": "not-a-number"}

    async def scenario():
        storage = LocalStorage()
        await storage.set(STORAGE_KEY, [broken, "garbage"])
        store = MirrorStore(storage)
        await store.add(_record("temp-y-2-bbbbbb"))
        await store.remove("temp-y-2-bbbbbb")
        await store.add(_record("temp-z-3-cccccc"))
        return await storage.get(STORAGE_KEY), await store.load_records()

    stored, records = asyncio.run(scenario())

    assert stored[0]["mirrorRepo"] == "temp-z-3-cccccc"
    assert stored[1:] == [broken, "garbage"]
    assert [record.mirror_repo for record in records] == ["temp-z-3-cccccc"]


def test_remove_reports_whether_record_existed() -> None:
    async def scenario():
        store = MirrorStore(LocalStorage())
        await store.add(_record("temp-1"))
        await store.add(_record("temp-2"))
        first = await store.remove("temp-1")
        second = await store.remove("temp-1")
        return first, second, await store.load_records()

    first, second, records = asyncio.run(scenario())

    assert first is True
    assert second is False
    assert [record.mirror_repo for record in records] == ["temp-2"]


class SlowStorage(LocalStorage):
    """Yields to the event loop inside every read and write."""

    async def get(self, key):
        await asyncio.sleep(0)
        value = await super().get(key)
        await asyncio.sleep(0)
        return value

    async def set(self, key, value):
        await asyncio.sleep(0)
        await super().set(key, value)


def test_concurrent_adds_do_not_lose_records() -> None:
    async def scenario():
        store = MirrorStore(SlowStorage())
        await asyncio.gather(*(store.add(_record(f"temp-{index}")) for index in range(20)))
        return await store.load_records()

    records = asyncio.run(scenario())

    assert sorted(record.mirror_repo for record in records) == sorted(f"temp-{index}" for index in range(20))


def test_update_writes_mutator_result_once() -> None:
    writes: list[object] = []

    class CountingStorage(LocalStorage):
        async def set(self, key, value):
            writes.append(value)
            await super().set(key, value)

    async def scenario():
        store = MirrorStore(CountingStorage())
        await store.replace([_record("temp-1"), _record("temp-2")])
        writes.clear()
        return await store.update(lambda records: [r for r in records if r.mirror_repo != "temp-1"])

    survivors = asyncio.run(scenario())

    assert [record.mirror_repo for record in survivors] == ["temp-2"]
    assert len(writes) == 1
