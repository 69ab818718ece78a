"""Account settings model and loader exports."""

from .loader import AccountSettingsError, AccountSettingsLoader
from .models import SETTINGS_KEYS, AccountSettings

__all__ = [
    "AccountSettings",
    "AccountSettingsError",
    "AccountSettingsLoader",
    "SETTINGS_KEYS",
]
