"""
GitHub repository host: existence checks, creation, initial push, deletion.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .base import DeleteStatus, RepositoryHost, RepositoryHostError, RepositoryInfo

logger = logging.getLogger(__name__)


class GitHubRepositoryHost(RepositoryHost):
    """Client for the GitHub REST API plus the ``git`` CLI for pushes."""

    def __init__(
        self,
        token: str,
        owner: str,
        api_url: str = "https://api.github.com",
        organization: bool = False,
        private: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token: Personal access token with repo (and delete_repo) scope
            owner: User or organization owning the repositories
            api_url: REST API base URL
            organization: Create repositories under /orgs/{owner} instead of /user
            private: Visibility of created repositories
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.token = token
        self.owner = owner
        self.api_url = api_url.rstrip("/")
        self.organization = organization
        self.private = private
        self.timeout = timeout
        self._transport = transport
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        url = f"{self.api_url}{endpoint}"
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                return await client.request(method, url, headers=self.headers, json=json)
        except httpx.HTTPError as e:
            raise RepositoryHostError(f"{method} {endpoint} failed: {e}") from e

    async def repository_exists(self, name: str) -> bool:
        response = await self._request("GET", f"/repos/{self.owner}/{name}")
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise RepositoryHostError(
            f"Could not determine whether {self.owner}/{name} exists: HTTP {response.status_code}",
            status=response.status_code,
        )

    async def create_repository(self, name: str, description: str) -> RepositoryInfo:
        endpoint = f"/orgs/{self.owner}/repos" if self.organization else "/user/repos"
        logger.info(f"[GITHUB] Creating repository: {self.owner}/{name}")
        response = await self._request("POST", endpoint, json={
            "name": name,
            "description": description,
            "private": self.private,
            "auto_init": False,
        })
        if response.status_code != 201:
            raise RepositoryHostError(
                f"Failed to create GitHub repository {self.owner}/{name}: "
                f"HTTP {response.status_code} {response.text[:200]}",
                status=response.status_code,
            )
        data = response.json()
        logger.info("[GITHUB] Repository created successfully")
        return RepositoryInfo(
            name=data.get("name", name),
            owner=(data.get("owner") or {}).get("login", self.owner),
            html_url=data.get("html_url", f"https://github.com/{self.owner}/{name}"),
            clone_url=data.get("clone_url", f"https://github.com/{self.owner}/{name}.git"),
        )

    async def delete_repository(self, name: str) -> DeleteStatus:
        response = await self._request("DELETE", f"/repos/{self.owner}/{name}")
        if response.status_code == 204:
            logger.info(f"[GITHUB] Deleted repository: {self.owner}/{name}")
            return DeleteStatus.DELETED
        if response.status_code == 404:
            return DeleteStatus.ABSENT
        raise RepositoryHostError(
            f"Failed to delete GitHub repository {self.owner}/{name}: HTTP {response.status_code}",
            status=response.status_code,
        )

    async def _git(self, project_dir: Path, *args: str) -> str:
        # The remote URL carries the token
        shown = " ".join(args).replace(self.token, "***")
        try:
            process = await asyncio.create_subprocess_exec(
                "git", *args,
                cwd=str(project_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise RepositoryHostError(f"git {shown} could not start: {e.strerror or e}") from e
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").replace(self.token, "***").strip()
            raise RepositoryHostError(f"git {shown} failed: {detail}")
        return stdout.decode(errors="replace")

    async def push(self, project_dir: Path, repo: RepositoryInfo, commit_message: str) -> str:
        authed = repo.clone_url.replace("https://", f"https://x-access-token:{self.token}@", 1)
        logger.info(f"[GITHUB] Initializing git in {project_dir}")
        commands: List[List[str]] = [
            ["init"],
            ["add", "."],
            ["-c", "user.name=scaffolder", "-c", "user.email=scaffolder@localhost",
             "commit", "-m", commit_message],
            ["branch", "-M", "main"],
            ["remote", "add", "origin", authed],
            ["push", "-u", "origin", "main"],
        ]
        for args in commands:
            await self._git(project_dir, *args)
        logger.info(f"[GITHUB] Successfully pushed to {repo.clone_url}")
        return repo.html_url
