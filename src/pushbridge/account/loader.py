"""Account settings loading utilities."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import AccountSettings


class AccountSettingsError(RuntimeError):
    """Raised when the account settings file cannot be parsed."""


class AccountSettingsLoader:
    """Loads account settings from a YAML file on disk."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> AccountSettings | None:
        """Return the persisted settings, or ``None`` when nothing has been saved yet."""

        if not self._path.exists():
            return None

        try:
            document = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:  # pragma: no cover - library type
            raise AccountSettingsError(f"Failed to parse YAML in {self._path}: {exc}") from exc

        if document is None:
            return None
        if not isinstance(document, dict):
            raise AccountSettingsError(f"Account settings in {self._path} must be a mapping")

        try:
            return AccountSettings.model_validate(document)
        except ValidationError as exc:
            raise AccountSettingsError(f"Account settings validation error in {self._path}: {exc}") from exc


__all__ = ["AccountSettings", "AccountSettingsError", "AccountSettingsLoader"]
