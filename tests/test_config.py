from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from pushbridge.config import PushbridgeSettings, get_settings


def test_defaults_match_reference_timings(monkeypatch) -> None:
    for name in ("PUSHBRIDGE_MIRROR_MAX_AGE", "PUSHBRIDGE_CLEANUP_MAX_ATTEMPTS", "PUSHBRIDGE_UPLOAD_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    settings = PushbridgeSettings()

    assert settings.mirror_max_age == 60.0
    assert settings.cleanup_max_attempts == 3
    assert settings.upload_timeout == 120.0
    assert settings.copy_batch_size == 10
    assert settings.default_commit_message == "Commit from Bolt to GitHub"


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PUSHBRIDGE_STORAGE_PATH", str(tmp_path / "local.json"))
    monkeypatch.setenv("PUSHBRIDGE_LOG_LEVEL", " debug ")
    monkeypatch.setenv("PUSHBRIDGE_TARGET_HOST", "https://bolt.example/")
    monkeypatch.setenv("PUSHBRIDGE_CLEANUP_INTERVAL", "5")

    settings = PushbridgeSettings()

    assert settings.storage_path == tmp_path / "local.json"
    assert settings.log_level == "DEBUG"
    assert settings.target_tool_host == "bolt.example"
    assert settings.cleanup_interval == 5.0


def test_rejects_unknown_log_level(monkeypatch) -> None:
    monkeypatch.setenv("PUSHBRIDGE_LOG_LEVEL", "chatty")
    with pytest.raises(ValidationError):
        PushbridgeSettings()


@pytest.mark.parametrize(
    "name, value",
    [
        ("PUSHBRIDGE_MIRROR_MAX_AGE", "0"),
        ("PUSHBRIDGE_UPLOAD_TIMEOUT", "-1"),
        ("PUSHBRIDGE_CLEANUP_MAX_ATTEMPTS", "0"),
        ("PUSHBRIDGE_COPY_BATCH_SIZE", "0"),
    ],
)
def test_rejects_non_positive_values(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        PushbridgeSettings()


def test_get_settings_resolves_paths(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("PUSHBRIDGE_ACCOUNT_PATH", "account.yaml")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.account_settings_path == (tmp_path / "account.yaml").resolve()
        assert settings.storage_path.is_absolute()
        assert get_settings() is settings
    finally:
        get_settings.cache_clear()
