"""Push the contents of a project archive to a GitHub repository as one commit."""

from __future__ import annotations

import io
import logging
import posixpath
import zipfile
from typing import Any, Awaitable, Callable

from ..account import AccountSettings
from .client import GitHubClient, HostingApiError, resolve_org

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], Awaitable[None]]


class ArchiveError(RuntimeError):
    """Raised when an uploaded archive cannot be read."""


def extract_archive(archive: bytes) -> dict[str, bytes]:
    """Return ``{path: content}`` for every regular file in the archive.

    A single top-level directory shared by every entry is stripped, and
    anything under ``.git/`` is ignored.
    """

    try:
        bundle = zipfile.ZipFile(io.BytesIO(archive))
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"Invalid ZIP archive: {exc}") from exc

    files: dict[str, bytes] = {}
    with bundle:
        for info in bundle.infolist():
            if info.is_dir():
                continue
            path = posixpath.normpath(info.filename.lstrip("/"))
            if path.startswith("..") or path == ".":
                continue
            files[path] = bundle.read(info)

    if not files:
        raise ArchiveError("ZIP archive contains no files")

    roots = {path.split("/", 1)[0] for path in files}
    if len(roots) == 1 and all("/" in path for path in files):
        prefix = roots.pop() + "/"
        files = {path[len(prefix):]: content for path, content in files.items()}

    return {
        path: content
        for path, content in files.items()
        if not (path == ".git" or path.startswith(".git/"))
    }


class ZipArchivePusher:
    """Commit an uploaded project archive to the configured repository."""

    def __init__(
        self,
        client: GitHubClient,
        account: AccountSettings,
        *,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._client = client
        self._account = account
        self._on_progress = on_progress

    async def _report(self, message: str, progress: int) -> None:
        if self._on_progress is not None:
            await self._on_progress(message, progress)

    async def process_zip_file(self, archive: bytes, project_id: str, commit_message: str) -> None:
        owner = self._account.repo_owner
        repo = self._account.repo_name or project_id
        branch = self._account.branch

        await self._report("Reading project archive...", 10)
        files = extract_archive(archive)
        logger.info(
            "Pushing archive",
            extra={"owner": owner, "repo": repo, "branch": branch, "file_count": len(files)},
        )

        await self._ensure_repo(owner, repo)

        await self._report("Preparing commit...", 30)
        ref = await self._client.get_ref(owner, repo, branch)
        head_sha = ref["object"]["sha"]
        head_commit = await self._client.get_commit(owner, repo, head_sha)

        entries: list[dict[str, Any]] = []
        total = len(files)
        for index, (path, content) in enumerate(sorted(files.items()), start=1):
            blob_sha = await self._client.create_blob(owner, repo, content)
            entries.append({"path": path, "mode": "100644", "type": "blob", "sha": blob_sha})
            if index % 10 == 0 or index == total:
                await self._report(f"Uploading files ({index}/{total})...", 30 + int(index / total * 50))

        tree_sha = await self._client.create_tree(
            owner, repo, entries, base_tree=head_commit["tree"]["sha"]
        )
        commit_sha = await self._client.create_commit(
            owner, repo, message=commit_message, tree=tree_sha, parents=[head_sha]
        )
        await self._report("Updating branch...", 90)
        await self._client.update_ref(owner, repo, branch, commit_sha)
        logger.info("Archive pushed", extra={"owner": owner, "repo": repo, "commit": commit_sha})

    async def _ensure_repo(self, owner: str, repo: str) -> None:
        try:
            await self._client.get_repo(owner, repo)
        except HostingApiError as exc:
            if exc.status != 404:
                raise
            logger.info("Creating missing repository", extra={"owner": owner, "repo": repo})
            org = await resolve_org(self._client, owner)
            await self._client.create_repo(repo, private=True, auto_init=True, org=org)


__all__ = ["ArchiveError", "ZipArchivePusher", "extract_archive"]
