"""Account settings model for the GitHub credentials pushbridge operates with."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from ..storage.models import AuthMethod

SETTINGS_KEYS = frozenset({"github_token", "repo_owner", "repo_name", "branch"})


class AccountSettings(BaseModel):
    """Credentials and target repository as persisted by the settings form."""

    github_token: str = Field(default="", description="Personal access token or app token.")
    repo_owner: str = Field(default="", description="Account namespace that owns pushed repositories.")
    repo_name: str = Field(
        default="",
        description="Repository archives are pushed to; the project id is used when empty.",
    )
    branch: str = Field(default="main", description="Branch archives are committed to.")
    auth_method: AuthMethod = Field(
        default=AuthMethod.PAT,
        description="Which credential strategy produced the token.",
    )

    @field_validator("github_token", "repo_owner", "repo_name", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (dict, list)):
            raise ValueError("must be a string")
        return str(value).strip()

    @field_validator("branch", mode="before")
    @classmethod
    def _default_branch(cls, value: Any) -> str:
        if isinstance(value, (dict, list)):
            raise ValueError("must be a string")
        if value is None or not str(value).strip():
            return "main"
        return str(value).strip()

    @field_validator("auth_method", mode="before")
    @classmethod
    def _coerce_auth_method(cls, value: Any) -> AuthMethod:
        if value is None or value == "":
            return AuthMethod.PAT
        try:
            return AuthMethod(str(value).strip().lower())
        except ValueError:
            return AuthMethod.UNKNOWN

    @property
    def is_complete(self) -> bool:
        return bool(self.github_token and self.repo_owner)


__all__ = ["AccountSettings", "SETTINGS_KEYS"]
