from __future__ import annotations

import asyncio
import io
import zipfile

import pytest

from pushbridge.account import AccountSettings
from pushbridge.hosting import ArchiveError, HostingApiError, ZipArchivePusher, extract_archive


def _zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        for name, content in entries.items():
            bundle.writestr(name, content)
    return buffer.getvalue()


def test_extract_strips_common_root_and_git() -> None:
    archive = _zip(
        {
            "project/package.json": b"{}",
            "project/src/index.ts": b"export {}",
            "project/.git/HEAD": b"ref",
        }
    )

    assert extract_archive(archive) == {"package.json": b"{}", "src/index.ts": b"export {}"}


def test_extract_keeps_flat_layout() -> None:
    archive = _zip({"README.md": b"hi", "src/app.py": b"print()"})

    assert set(extract_archive(archive)) == {"README.md", "src/app.py"}


def test_extract_rejects_invalid_archive() -> None:
    with pytest.raises(ArchiveError):
        extract_archive(b"not a zip")


def test_extract_rejects_empty_archive() -> None:
    with pytest.raises(ArchiveError):
        extract_archive(_zip({}))


class StubGitClient:
    def __init__(self, *, repo_exists: bool = True, organizations: set[str] | None = None) -> None:
        self.repo_exists = repo_exists
        self.organizations = organizations or set()
        self.calls: list[tuple] = []

    async def get_repo(self, owner, repo):
        self.calls.append(("get_repo", owner, repo))
        if not self.repo_exists:
            raise HostingApiError("GitHub API Error (404): Not Found", status=404)
        return {"name": repo}

    async def is_organization(self, owner):
        self.calls.append(("is_organization", owner))
        return owner in self.organizations

    async def create_repo(self, name, **kwargs):
        self.calls.append(("create_repo", name, kwargs))
        self.repo_exists = True
        return {"name": name}

    async def get_ref(self, owner, repo, branch):
        self.calls.append(("get_ref", branch))
        return {"object": {"sha": "head"}}

    async def get_commit(self, owner, repo, sha):
        return {"tree": {"sha": "base-tree"}}

    async def create_blob(self, owner, repo, content):
        self.calls.append(("create_blob", content))
        return f"blob-{len(self.calls)}"

    async def create_tree(self, owner, repo, entries, *, base_tree):
        self.calls.append(("create_tree", [entry["path"] for entry in entries], base_tree))
        return "tree"

    async def create_commit(self, owner, repo, *, message, tree, parents):
        self.calls.append(("create_commit", message, tree, parents))
        return "commit"

    async def update_ref(self, owner, repo, branch, sha):
        self.calls.append(("update_ref", branch, sha))


def test_pusher_commits_archive_in_one_commit() -> None:
    client = StubGitClient()
    progress: list[int] = []

    async def on_progress(message: str, value: int) -> None:
        progress.append(value)

    account = AccountSettings(github_token="t", repo_owner="octocat", repo_name="site", branch="dev")
    pusher = ZipArchivePusher(client, account, on_progress=on_progress)  # type: ignore[arg-type]

    asyncio.run(pusher.process_zip_file(_zip({"a.txt": b"a", "b.txt": b"b"}), "proj-1", "Ship it"))

    assert ("create_tree", ["a.txt", "b.txt"], "base-tree") in client.calls
    assert ("create_commit", "Ship it", "tree", ["head"]) in client.calls
    assert client.calls[-1] == ("update_ref", "dev", "commit")
    assert progress[0] == 10
    assert progress[-1] == 90
    assert progress == sorted(progress)


def test_pusher_creates_missing_repo_named_after_project() -> None:
    client = StubGitClient(repo_exists=False)
    account = AccountSettings(github_token="t", repo_owner="octocat")
    pusher = ZipArchivePusher(client, account)  # type: ignore[arg-type]

    asyncio.run(pusher.process_zip_file(_zip({"a.txt": b"a"}), "proj-1", "msg"))

    create = next(call for call in client.calls if call[0] == "create_repo")
    assert create[1] == "proj-1"
    assert create[2] == {"private": True, "auto_init": True, "org": None}


def test_pusher_creates_missing_repo_under_organization() -> None:
    client = StubGitClient(repo_exists=False, organizations={"acme"})
    account = AccountSettings(github_token="t", repo_owner="acme", repo_name="site")
    pusher = ZipArchivePusher(client, account)  # type: ignore[arg-type]

    asyncio.run(pusher.process_zip_file(_zip({"a.txt": b"a"}), "proj-1", "msg"))

    create = next(call for call in client.calls if call[0] == "create_repo")
    assert create[1] == "site"
    assert create[2]["org"] == "acme"
