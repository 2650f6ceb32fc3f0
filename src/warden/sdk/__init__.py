"""Warden SDK — settings loading and session wiring."""

from warden.sdk.errors import SettingsValidationError
from warden.sdk.models import PolicyDirSettings, SessionSettings, TelemetrySettings
from warden.sdk.session import Session, SettingsLoader, import_tool

__all__ = [
    "PolicyDirSettings",
    "Session",
    "SessionSettings",
    "SettingsLoader",
    "SettingsValidationError",
    "TelemetrySettings",
    "import_tool",
]
