from pathlib import Path
import textwrap

import pytest

from pushbridge.account import AccountSettingsError, AccountSettingsLoader, SETTINGS_KEYS
from pushbridge.storage import AuthMethod


def write_account(path: Path, body: str) -> None:
    path.write_text(textwrap.dedent(body).strip(), encoding="utf-8")


def test_loader_reads_settings(tmp_path: Path) -> None:
    path = tmp_path / "account.yaml"
    write_account(
        path,
        """
        github_token: "  ghp_example  "
        repo_owner: octocat
        repo_name: bolt-project
        auth_method: host_app
        """,
    )

    settings = AccountSettingsLoader(path).load()

    assert settings is not None
    assert settings.github_token == "ghp_example"
    assert settings.repo_owner == "octocat"
    assert settings.branch == "main"
    assert settings.auth_method is AuthMethod.HOST_APP
    assert settings.is_complete


def test_loader_handles_missing_file(tmp_path: Path) -> None:
    assert AccountSettingsLoader(tmp_path / "missing.yaml").load() is None


def test_loader_handles_empty_document(tmp_path: Path) -> None:
    path = tmp_path / "account.yaml"
    path.write_text("", encoding="utf-8")
    assert AccountSettingsLoader(path).load() is None


def test_incomplete_settings(tmp_path: Path) -> None:
    path = tmp_path / "account.yaml"
    write_account(path, "repo_owner: octocat\nbranch: ''\nauth_method: carrier-pigeon")

    settings = AccountSettingsLoader(path).load()

    assert settings is not None
    assert not settings.is_complete
    assert settings.branch == "main"
    assert settings.auth_method is AuthMethod.UNKNOWN


def test_loader_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "account.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(AccountSettingsError):
        AccountSettingsLoader(path).load()


def test_loader_reports_validation_error(tmp_path: Path) -> None:
    path = tmp_path / "account.yaml"
    write_account(path, "repo_owner: octocat\nbranch: [not, a, string]")

    with pytest.raises(AccountSettingsError) as excinfo:
        AccountSettingsLoader(path).load()

    assert "validation error" in str(excinfo.value)


def test_settings_keys_cover_credentials_and_target() -> None:
    assert SETTINGS_KEYS == {"github_token", "repo_owner", "repo_name", "branch"}
