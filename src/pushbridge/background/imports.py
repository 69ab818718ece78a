"""Import a private repository through a disposable public mirror."""

from __future__ import annotations

import asyncio
import logging
import random
import string
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from ..hosting import HostingClient, resolve_org
from ..storage import AuthMethod, MirrorRecord, MirrorStore, OperationLedger
from .cleanup import CleanupScheduler
from .errors import describe_error
from .messages import UploadStatus
from .tabs import TabOpener, build_mirror_url

logger = logging.getLogger(__name__)

COPY_BATCH_SIZE = 10
FALLBACK_BRANCH = "main"
MIRROR_DESCRIPTION = "Temporary repository for Bolt import - will be deleted automatically"

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase

StatusCallback = Callable[[UploadStatus], None]


class ImportStepError(RuntimeError):
    """A workflow step failed; the message is already user-facing."""


class CopyContentsError(ImportStepError):
    """Raised when the source repository listing cannot be read."""


@dataclass(slots=True)
class ImportResult:
    operation_id: str
    mirror_repo: str
    branch: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {
            "operation_id": self.operation_id,
            "mirror_repo": self.mirror_repo,
            "branch": self.branch,
            "url": self.url,
        }


def generate_mirror_name(source_repo: str, now: float) -> str:
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=6))
    return f"temp-{source_repo}-{int(now * 1000)}-{suffix}"


def choose_branch(branches: list[dict[str, Any]]) -> str:
    names = [str(branch.get("name")) for branch in branches if branch.get("name")]
    for branch in branches:
        if branch.get("default") and branch.get("name"):
            return str(branch["name"])
    for candidate in ("main", "master"):
        if candidate in names:
            return candidate
    return names[0] if names else FALLBACK_BRANCH


class ImportWorkflow:
    """Mirror a private repository publicly and hand it to the target tool.

    Steps run strictly in order: resolve branch, create the mirror, persist
    its record, copy top-level files, flip visibility, open the deep link.
    Once the mirror exists every failure triggers one best-effort delete.
    """

    def __init__(
        self,
        client: HostingClient,
        mirror_store: MirrorStore,
        ledger: OperationLedger,
        scheduler: CleanupScheduler,
        tab_opener: TabOpener,
        broadcast: StatusCallback,
        *,
        owner: str,
        auth_method: AuthMethod = AuthMethod.UNKNOWN,
        target_host: str = "bolt.new",
        hosting_host: str = "github.com",
        clock: Callable[[], float] = time.time,
        batch_size: int = COPY_BATCH_SIZE,
    ) -> None:
        self._client = client
        self._mirror_store = mirror_store
        self._ledger = ledger
        self._scheduler = scheduler
        self._tab_opener = tab_opener
        self._broadcast = broadcast
        self._owner = owner
        self._auth_method = auth_method
        self._target_host = target_host
        self._hosting_host = hosting_host
        self._clock = clock
        self._batch_size = batch_size
        self._last_created_at = 0.0

    @property
    def owner(self) -> str:
        return self._owner

    def _status(self, status: str, message: str, progress: int) -> None:
        try:
            self._broadcast(UploadStatus(status=status, message=message, progress=progress))
        except Exception:
            logger.exception("Status broadcast failed")

    def _now(self) -> float:
        now = max(self._clock(), self._last_created_at)
        self._last_created_at = now
        return now

    async def handle_private_repo_import(self, source_repo: str, branch: str | None = None) -> ImportResult | None:
        operation_id = f"import-{uuid.uuid4().hex}"
        self._ledger.start_operation(
            "import",
            operation_id,
            f"Import private repository {source_repo}",
            {"sourceRepo": source_repo, "branch": branch, "authMethod": self._auth_method.value},
        )
        logger.info(
            "Starting private repository import",
            extra={"operation_id": operation_id, "source_repo": source_repo, "auth_method": self._auth_method.value},
        )

        mirror_repo: str | None = None
        try:
            resolved_branch = branch or await self._resolve_branch(source_repo)

            self._status("uploading", "Creating temporary repository...", 10)
            org = await resolve_org(self._client, self._owner)
            created_at = self._now()
            candidate = generate_mirror_name(source_repo, created_at)
            try:
                await self._client.create_repo(
                    candidate,
                    private=True,
                    auto_init=False,
                    description=MIRROR_DESCRIPTION,
                    org=org,
                )
            except Exception as exc:
                raise ImportStepError(f"Failed to create temporary repository: {describe_error(exc)}") from exc
            mirror_repo = candidate

            await self._mirror_store.add(
                MirrorRecord(
                    source_repo=source_repo,
                    mirror_repo=mirror_repo,
                    owner=self._owner,
                    branch=resolved_branch,
                    created_at=created_at,
                    auth_method=self._auth_method,
                    operation_id=operation_id,
                )
            )
            self._scheduler.start()

            self._status("uploading", "Copying repository contents...", 30)
            await self._copy_contents(source_repo, mirror_repo, resolved_branch)

            self._status("uploading", "Making repository public...", 70)
            await self._client.update_visibility(self._owner, mirror_repo, private=False)

            self._status("uploading", "Opening Bolt...", 90)
            url = build_mirror_url(self._target_host, self._hosting_host, self._owner, mirror_repo)
            try:
                await self._tab_opener.open_tab(url, active=True)
            except Exception:
                logger.exception("Failed to open tab", extra={"url": url})
        except Exception as exc:
            message = str(exc) if isinstance(exc, ImportStepError) else describe_error(exc)
            logger.error(
                "Private repository import failed",
                extra={"operation_id": operation_id, "source_repo": source_repo, "error": message},
            )
            if mirror_repo is not None:
                await self._compensate(mirror_repo)
            self._ledger.fail_operation(operation_id, message)
            self._status("error", message, 100)
            return None

        self._ledger.complete_operation(operation_id, {"mirrorRepo": mirror_repo, "branch": resolved_branch})
        self._status("success", "Repository imported successfully", 100)
        self._scheduler.start()
        logger.info(
            "Private repository import finished",
            extra={"operation_id": operation_id, "mirror_repo": mirror_repo},
        )
        return ImportResult(operation_id=operation_id, mirror_repo=mirror_repo, branch=resolved_branch, url=url)

    async def _resolve_branch(self, source_repo: str) -> str:
        try:
            branches = await self._client.list_branches(self._owner, source_repo)
        except Exception as exc:
            logger.warning(
                "Branch detection failed; using fallback",
                extra={"source_repo": source_repo, "fallback": FALLBACK_BRANCH, "error": str(exc)},
            )
            return FALLBACK_BRANCH
        if not isinstance(branches, list):
            return FALLBACK_BRANCH
        return choose_branch([entry for entry in branches if isinstance(entry, dict)])

    async def _copy_contents(self, source_repo: str, mirror_repo: str, branch: str) -> None:
        try:
            listing = await self._client.list_contents(self._owner, source_repo, ref=branch)
        except Exception as exc:
            raise CopyContentsError(f"Failed to list repository contents: {describe_error(exc)}") from exc
        if not isinstance(listing, list):
            raise CopyContentsError("Failed to list repository contents: unexpected response")

        files = [
            entry["path"]
            for entry in listing
            if isinstance(entry, dict) and entry.get("type") == "file" and entry.get("path")
        ]
        total = len(files)
        copied = 0
        for start in range(0, total, self._batch_size):
            batch = files[start:start + self._batch_size]
            results = await asyncio.gather(
                *(self._copy_file(source_repo, mirror_repo, branch, path) for path in batch)
            )
            copied += sum(1 for ok in results if ok)
            done = start + len(batch)
            self._status(
                "uploading",
                f"Copying files ({done}/{total})...",
                30 + int(done / total * 40),
            )
        logger.info(
            "Copied repository contents",
            extra={"source_repo": source_repo, "mirror_repo": mirror_repo, "copied": copied, "total": total},
        )

    async def _copy_file(self, source_repo: str, mirror_repo: str, branch: str, path: str) -> bool:
        try:
            content = await self._client.get_file_content(self._owner, source_repo, path, ref=branch)
            await self._client.write_file(
                self._owner,
                mirror_repo,
                path,
                content,
                message=f"Copy {path} from {source_repo}",
                branch=branch,
            )
        except Exception as exc:
            logger.warning(
                "Failed to copy file",
                extra={"source_repo": source_repo, "path": path, "error": str(exc)},
            )
            return False
        return True

    async def _compensate(self, mirror_repo: str) -> None:
        try:
            await self._client.delete_repo(self._owner, mirror_repo)
        except Exception as exc:
            logger.error(
                "Compensating delete failed; mirror left for cleanup",
                extra={"mirror_repo": mirror_repo, "error": str(exc)},
            )
            return
        try:
            await self._mirror_store.remove(mirror_repo)
        except Exception:
            logger.exception("Failed to drop compensated mirror record", extra={"mirror_repo": mirror_repo})


__all__ = [
    "COPY_BATCH_SIZE",
    "CopyContentsError",
    "FALLBACK_BRANCH",
    "ImportResult",
    "ImportStepError",
    "ImportWorkflow",
    "choose_branch",
    "generate_mirror_name",
]
