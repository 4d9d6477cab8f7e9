"""
GitHub Service for PR Review Bot.

Installation-scoped GitHub REST client used to list pull request files,
read file contents and post reviews.
"""

import asyncio
import logging
import time
from typing import Any, Optional
from urllib.parse import quote

import httpx

from pr_review_bot.exceptions import (
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubNotFoundError,
)
from pr_review_bot.models.schemas import ChangedFile

# GitHub stops listing pull request files after 3000 entries.
FILES_PER_PAGE = 100
MAX_FILE_PAGES = 30

# Upper bound on how long a request waits for the rate limit window to reset.
MAX_RATE_LIMIT_WAIT = 60


class GitHubService:
    """
    GitHub API integration service.

    One instance is bound to a single installation access token and is used
    for the lifetime of one pipeline run.
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the GitHub Service.

        Args:
            token: Installation access token.
            api_url: GitHub API base URL.
            timeout: Request timeout in seconds.
        """
        self._logger = logging.getLogger("pr_review_bot.github_service")

        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

        # Rate limiting state
        self._rate_limit_remaining = 5000
        self._rate_limit_reset = 0

    @property
    def is_configured(self) -> bool:
        """Check if the service holds a token."""
        return bool(self._token)

    def _get_headers(self) -> dict[str, str]:
        """Get HTTP headers for GitHub API requests."""
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "PR-Review-Bot/1.0",
        }
        if self._token:
            headers["Authorization"] = f"token {self._token}"
        return headers

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs,
    ) -> Any:
        """
        Make a request to the GitHub API.

        Args:
            method: HTTP method.
            endpoint: API endpoint.
            **kwargs: Additional arguments for httpx.

        Returns:
            Decoded response JSON.

        Raises:
            GitHubNotFoundError: On 404.
            GitHubAuthenticationError: On 401.
            GitHubAPIError: On any other failed request.
        """
        if self._rate_limit_remaining < 10:
            delay = min(
                max(self._rate_limit_reset - time.time(), 1),
                MAX_RATE_LIMIT_WAIT,
            )
            self._logger.warning(
                f"GitHub rate limit nearly exhausted, waiting {delay:.0f}s"
            )
            await asyncio.sleep(delay)

        url = f"{self._api_url}{endpoint}"
        headers = self._get_headers()

        async with httpx.AsyncClient() as client:
            try:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    timeout=self._timeout,
                    **kwargs,
                )
            except httpx.RequestError as e:
                raise GitHubAPIError(f"Request to {endpoint} failed: {e}") from e

        self._rate_limit_remaining = int(
            response.headers.get("X-RateLimit-Remaining", 5000)
        )
        self._rate_limit_reset = int(
            response.headers.get("X-RateLimit-Reset", 0)
        )

        if response.status_code == 404:
            raise GitHubNotFoundError(endpoint)

        if response.status_code == 401:
            raise GitHubAuthenticationError()

        if response.status_code >= 400:
            raise GitHubAPIError(
                f"GitHub API error {response.status_code} for {method} {endpoint}",
                status_code=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def list_pull_request_files(
        self,
        owner: str,
        repo: str,
        pr_number: int,
    ) -> list[ChangedFile]:
        """
        List every file changed in a Pull Request.

        Pages through the listing until a short page is returned.

        Args:
            owner: Repository owner.
            repo: Repository name.
            pr_number: PR number.

        Returns:
            Changed files in the order GitHub reports them.
        """
        endpoint = f"/repos/{owner}/{repo}/pulls/{pr_number}/files"
        files: list[ChangedFile] = []

        for page in range(1, MAX_FILE_PAGES + 1):
            data = await self._make_request(
                "GET",
                endpoint,
                params={"per_page": FILES_PER_PAGE, "page": page},
            )
            if not isinstance(data, list):
                raise GitHubAPIError(f"Unexpected response listing files for {endpoint}")

            files.extend(ChangedFile.from_github(item) for item in data)

            if len(data) < FILES_PER_PAGE:
                break

        self._logger.debug(f"Listed {len(files)} files for {owner}/{repo}#{pr_number}")
        return files

    async def get_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        ref: str,
    ) -> Any:
        """
        Get the contents entry for a path at a specific ref.

        Args:
            owner: Repository owner.
            repo: Repository name.
            path: File path.
            ref: Git reference (branch, tag, commit SHA).

        Returns:
            The contents response: a dict for files, a list for directories.
        """
        endpoint = f"/repos/{owner}/{repo}/contents/{quote(path)}"
        return await self._make_request("GET", endpoint, params={"ref": ref})

    async def create_review(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        commit_sha: str,
        body: str,
        event: str = "COMMENT",
        comments: Optional[list[dict]] = None,
    ) -> dict:
        """
        Create a PR review.

        Args:
            owner: Repository owner.
            repo: Repository name.
            pr_number: PR number.
            commit_sha: Commit SHA.
            body: Review body.
            event: Review event (APPROVE, REQUEST_CHANGES, COMMENT).
            comments: Optional list of review comments.

        Returns:
            The created review as returned by GitHub.
        """
        endpoint = f"/repos/{owner}/{repo}/pulls/{pr_number}/reviews"

        data: dict[str, Any] = {
            "commit_id": commit_sha,
            "body": body,
            "event": event,
        }

        if comments:
            data["comments"] = comments

        return await self._make_request("POST", endpoint, json=data)
