"""Async client for the GitHub REST API."""

from __future__ import annotations

import base64
import logging
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.github.com"


class HostingApiError(RuntimeError):
    """Raised when a hosting provider request fails."""

    def __init__(
        self,
        message: str,
        *,
        status: int = 0,
        original_message: str | None = None,
        rate_limit_remaining: int | None = None,
        rate_limit_limit: int | None = None,
        rate_limited: bool = False,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.original_message = original_message or message
        self.rate_limit_remaining = rate_limit_remaining
        self.rate_limit_limit = rate_limit_limit
        self.rate_limited = rate_limited


class HostingClient(Protocol):
    """Subset of the hosting API the orchestration core depends on."""

    async def create_repo(
        self,
        name: str,
        *,
        private: bool,
        auto_init: bool = False,
        description: str | None = None,
        org: str | None = None,
    ) -> dict[str, Any]:
        ...

    async def delete_repo(self, owner: str, repo: str) -> None:
        ...

    async def is_organization(self, owner: str) -> bool:
        ...

    async def update_visibility(self, owner: str, repo: str, *, private: bool) -> None:
        ...

    async def list_branches(self, owner: str, repo: str) -> list[dict[str, Any]]:
        ...

    async def list_contents(self, owner: str, repo: str, path: str = "", *, ref: str | None = None) -> Any:
        ...

    async def get_file_content(self, owner: str, repo: str, path: str, *, ref: str | None = None) -> bytes:
        ...

    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str | None = None,
    ) -> None:
        ...


def _header_int(response: httpx.Response, name: str) -> int | None:
    value = response.headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class GitHubClient:
    """Thin async wrapper around ``httpx.AsyncClient`` for the GitHub API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise HostingApiError(
                f"GitHub API Error: {exc.__class__.__name__}: {exc}",
                status=0,
                original_message=str(exc),
            ) from exc

        if response.is_error:
            raise self._error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _error_from_response(self, response: httpx.Response) -> HostingApiError:
        try:
            body = response.json()
        except ValueError:
            body = None
        provider_message = (
            body.get("message") if isinstance(body, dict) and body.get("message") else response.reason_phrase
        )
        remaining = _header_int(response, "x-ratelimit-remaining")
        limit = _header_int(response, "x-ratelimit-limit")
        rate_limited = response.status_code == 429 or (
            response.status_code == 403 and remaining == 0
        )
        logger.debug(
            "GitHub API request failed",
            extra={
                "status": response.status_code,
                "url": str(response.request.url),
                "rate_limit_remaining": remaining,
            },
        )
        return HostingApiError(
            f"GitHub API Error ({response.status_code}): {provider_message}",
            status=response.status_code,
            original_message=provider_message,
            rate_limit_remaining=remaining,
            rate_limit_limit=limit,
            rate_limited=rate_limited,
        )

    async def get_repo(self, owner: str, repo: str) -> dict[str, Any]:
        return await self.request("GET", f"/repos/{owner}/{repo}")

    async def create_repo(
        self,
        name: str,
        *,
        private: bool,
        auto_init: bool = False,
        description: str | None = None,
        org: str | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": name, "private": private, "auto_init": auto_init}
        if description:
            payload["description"] = description
        path = f"/orgs/{org}/repos" if org else "/user/repos"
        return await self.request("POST", path, json=payload)

    async def delete_repo(self, owner: str, repo: str) -> None:
        await self.request("DELETE", f"/repos/{owner}/{repo}")

    async def is_organization(self, owner: str) -> bool:
        info = await self.request("GET", f"/users/{owner}")
        return isinstance(info, dict) and info.get("type") == "Organization"

    async def update_visibility(self, owner: str, repo: str, *, private: bool) -> None:
        await self.request("PATCH", f"/repos/{owner}/{repo}", json={"private": private})

    async def list_branches(self, owner: str, repo: str) -> list[dict[str, Any]]:
        """Return ``{"name", "default"}`` entries for every branch of the repository."""

        repo_info = await self.get_repo(owner, repo)
        default_branch = repo_info.get("default_branch") if isinstance(repo_info, dict) else None
        branches = await self.request("GET", f"/repos/{owner}/{repo}/branches", params={"per_page": 100})
        return [
            {"name": branch["name"], "default": branch["name"] == default_branch}
            for branch in branches or []
        ]

    async def list_contents(self, owner: str, repo: str, path: str = "", *, ref: str | None = None) -> Any:
        params = {"ref": ref} if ref else None
        return await self.request("GET", f"/repos/{owner}/{repo}/contents/{path}".rstrip("/"), params=params)

    async def get_file_content(self, owner: str, repo: str, path: str, *, ref: str | None = None) -> bytes:
        payload = await self.list_contents(owner, repo, path, ref=ref)
        if not isinstance(payload, dict) or "content" not in payload:
            raise HostingApiError(f"GitHub API Error: {path} is not a file", original_message=f"{path} is not a file")
        return base64.b64decode(payload["content"])

    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str | None = None,
    ) -> None:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
        }
        if branch:
            payload["branch"] = branch
        await self.request("PUT", f"/repos/{owner}/{repo}/contents/{path}", json=payload)

    async def get_ref(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        return await self.request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{branch}")

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        return await self.request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")

    async def create_blob(self, owner: str, repo: str, content: bytes) -> str:
        blob = await self.request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": base64.b64encode(content).decode("ascii"), "encoding": "base64"},
        )
        return blob["sha"]

    async def create_tree(self, owner: str, repo: str, entries: list[dict[str, Any]], *, base_tree: str | None) -> str:
        payload: dict[str, Any] = {"tree": entries}
        if base_tree:
            payload["base_tree"] = base_tree
        tree = await self.request("POST", f"/repos/{owner}/{repo}/git/trees", json=payload)
        return tree["sha"]

    async def create_commit(self, owner: str, repo: str, *, message: str, tree: str, parents: list[str]) -> str:
        commit = await self.request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return commit["sha"]

    async def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> None:
        await self.request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            json={"sha": sha, "force": False},
        )


async def resolve_org(client: HostingClient, owner: str) -> str | None:
    """Return ``owner`` when it names an organization, else ``None`` for the viewer's account."""

    try:
        is_org = await client.is_organization(owner)
    except Exception as exc:
        logger.warning(
            "Could not determine whether owner is an organization; assuming user",
            extra={"owner": owner, "error": str(exc)},
        )
        return None
    return owner if is_org else None


__all__ = ["DEFAULT_API_URL", "GitHubClient", "HostingApiError", "HostingClient", "resolve_org"]
