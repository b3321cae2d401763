"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads

Git operations for publishing live in `publish.py`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

log = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RepoInfo:
    owner: str
    name: str
    html_url: str
    clone_url: str
    default_branch: str


@dataclass(frozen=True)
class PagesInfo:
    html_url: str
    branch: str
    path: str
    status: str | None = None


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com") -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "sitepress",
        }

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_base}{path}"
        log.debug("GitHub %s %s", method, path)
        r = requests.request(method, url, headers=self._headers(), json=json_body, timeout=30)
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            raise GitHubError(
                f"GitHub API error {r.status_code} {method} {path}: {payload.get('message', payload)}",
                status_code=r.status_code,
            )
        if r.status_code == 204:
            return None
        return r.json()

    @staticmethod
    def _repo_info(owner: str, name: str, data: dict[str, Any]) -> RepoInfo:
        return RepoInfo(
            owner=owner,
            name=name,
            html_url=data["html_url"],
            clone_url=data["clone_url"],
            default_branch=data.get("default_branch") or "main",
        )

    @staticmethod
    def _pages_info(data: dict[str, Any]) -> PagesInfo:
        source = data.get("source") or {}
        return PagesInfo(
            html_url=data.get("html_url") or "",
            branch=source.get("branch") or "",
            path=source.get("path") or "/",
            status=data.get("status"),
        )

    def get_repo(self, owner: str, name: str) -> RepoInfo | None:
        """
        Return RepoInfo if the repo exists and is accessible; otherwise None.
        """
        try:
            data = self._request("GET", f"/repos/{owner}/{name}")
        except GitHubError as e:
            if e.status_code == 404:
                return None
            raise
        return self._repo_info(owner, name, data)

    def create_repo(
        self,
        *,
        owner: str,
        name: str,
        private: bool,
        description: str = "",
    ) -> RepoInfo:
        """
        Create a new repository under either:
        - the authenticated user (if owner matches the viewer login), OR
        - an organization (if owner is an org).
        """
        viewer = self._request("GET", "/user")
        viewer_login = str(viewer.get("login") or "")

        body = {
            "name": name,
            "private": private,
            "description": description,
            "auto_init": False,
            "has_issues": True,
            "has_projects": False,
            "has_wiki": False,
        }

        if owner == viewer_login:
            data = self._request("POST", "/user/repos", json_body=body)
        else:
            data = self._request("POST", f"/orgs/{owner}/repos", json_body=body)

        log.info("Created GitHub repository %s/%s", owner, name)
        return self._repo_info(owner, name, data)

    def get_pages(self, owner: str, name: str) -> PagesInfo | None:
        """Return the Pages configuration, or None when Pages is not enabled."""
        try:
            data = self._request("GET", f"/repos/{owner}/{name}/pages")
        except GitHubError as e:
            if e.status_code == 404:
                return None
            raise
        return self._pages_info(data)

    def enable_pages(self, owner: str, name: str, *, branch: str, path: str = "/") -> PagesInfo:
        """
        Serve the repository's `branch` (at `path`) with GitHub Pages.

        Updates the source when Pages is already enabled on another branch.
        """
        source = {"branch": branch, "path": path}
        existing = self.get_pages(owner, name)
        if existing is None:
            data = self._request("POST", f"/repos/{owner}/{name}/pages", json_body={"source": source})
            log.info("Enabled GitHub Pages for %s/%s from %s", owner, name, branch)
            return self._pages_info(data)
        if existing.branch == branch and existing.path == path:
            return existing
        self._request("PUT", f"/repos/{owner}/{name}/pages", json_body={"source": source})
        log.info("Switched GitHub Pages for %s/%s to %s", owner, name, branch)
        return PagesInfo(html_url=existing.html_url, branch=branch, path=path, status=existing.status)
