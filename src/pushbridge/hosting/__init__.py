"""GitHub hosting client and archive pushing."""

from .archive import ArchiveError, ZipArchivePusher, extract_archive
from .client import DEFAULT_API_URL, GitHubClient, HostingApiError, HostingClient, resolve_org

__all__ = [
    "ArchiveError",
    "DEFAULT_API_URL",
    "GitHubClient",
    "HostingApiError",
    "HostingClient",
    "ZipArchivePusher",
    "extract_archive",
    "resolve_org",
]
