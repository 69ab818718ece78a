"""Background orchestration: port routing, imports, cleanup and uploads."""

from .cleanup import CleanupReport, CleanupScheduler
from .errors import describe_error, is_not_found, is_rate_limited
from .imports import ImportResult, ImportWorkflow
from .messages import MessageValidationError, UploadStatus, parse_message, status_envelope
from .router import BufferedPort, Port, PortConnection, PortRouter
from .service import BackgroundService
from .tabs import BrowserTabOpener, RecordingTabOpener, TabOpener, build_mirror_url
from .uploads import ArchiveProcessor, UploadOrchestrator
from .watcher import SettingsFileWatcher

__all__ = [
    "ArchiveProcessor",
    "BackgroundService",
    "BrowserTabOpener",
    "BufferedPort",
    "CleanupReport",
    "CleanupScheduler",
    "ImportResult",
    "ImportWorkflow",
    "MessageValidationError",
    "Port",
    "PortConnection",
    "PortRouter",
    "RecordingTabOpener",
    "SettingsFileWatcher",
    "TabOpener",
    "UploadOrchestrator",
    "UploadStatus",
    "build_mirror_url",
    "describe_error",
    "is_not_found",
    "is_rate_limited",
    "parse_message",
    "status_envelope",
]
