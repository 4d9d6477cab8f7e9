"""
GitHub App client for PR Review Bot.

Holds the application identity and mints installation-scoped GitHub clients.
"""

import logging
import time
from typing import Optional

import httpx
import jwt

from pr_review_bot.config import Settings
from pr_review_bot.exceptions import (
    GitHubAPIError,
    GitHubAppNotConfiguredError,
    GitHubAuthenticationError,
    GitHubNotFoundError,
)
from pr_review_bot.services.github_service import GitHubService

# GitHub rejects app tokens valid for more than ten minutes.
JWT_EXPIRY_SECONDS = 540
JWT_CLOCK_DRIFT_SECONDS = 60


class GitHubApp:
    """
    GitHub App identity.

    Created once at startup and read-only afterwards. Every pipeline run asks
    for its own installation client so tokens are never shared between
    installations.
    """

    def __init__(
        self,
        app_id: str,
        private_key: str,
        webhook_secret: str,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the GitHub App.

        Args:
            app_id: GitHub App identifier.
            private_key: PEM encoded RSA private key of the app.
            webhook_secret: Secret used to sign webhook deliveries.
            api_url: GitHub API base URL.
            timeout: Request timeout in seconds.
        """
        self._logger = logging.getLogger("pr_review_bot.github_app")

        self._app_id = app_id
        self._private_key = private_key
        self._webhook_secret = webhook_secret
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubApp":
        """Create the app from application settings."""
        return cls(
            app_id=settings.github_app_id,
            private_key=settings.resolved_private_key,
            webhook_secret=settings.github_webhook_secret,
            api_url=settings.github_api_url,
            timeout=settings.github_request_timeout,
        )

    @property
    def app_id(self) -> str:
        """Get the GitHub App identifier."""
        return self._app_id

    @property
    def webhook_secret(self) -> str:
        """Get the webhook shared secret."""
        return self._webhook_secret

    @property
    def is_configured(self) -> bool:
        """Check if the app identity and key are available."""
        return bool(self._app_id and self._private_key)

    def create_jwt(self, now: Optional[int] = None) -> str:
        """
        Create a signed app JWT.

        Args:
            now: Current UNIX time. Defaults to the system clock.

        Returns:
            RS256 signed token identifying the app.
        """
        if not self.is_configured:
            raise GitHubAppNotConfiguredError("GitHub App ID or private key not configured")

        now = int(time.time()) if now is None else now
        payload = {
            "iat": now - JWT_CLOCK_DRIFT_SECONDS,
            "exp": now + JWT_EXPIRY_SECONDS,
            "iss": str(self._app_id),
        }
        return jwt.encode(payload, self._private_key, algorithm="RS256")

    async def get_installation_token(self, installation_id: int) -> str:
        """
        Exchange the app JWT for an installation access token.

        Args:
            installation_id: Installation to act on behalf of.

        Returns:
            Installation access token.
        """
        endpoint = f"/app/installations/{installation_id}/access_tokens"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self.create_jwt()}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "PR-Review-Bot/1.0",
        }

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    f"{self._api_url}{endpoint}",
                    headers=headers,
                    timeout=self._timeout,
                )
            except httpx.RequestError as e:
                raise GitHubAPIError(f"Request to {endpoint} failed: {e}") from e

        if response.status_code in (401, 403):
            raise GitHubAuthenticationError(installation_id, status_code=response.status_code)
        if response.status_code == 404:
            raise GitHubNotFoundError(endpoint)
        if response.status_code >= 400:
            raise GitHubAPIError(
                f"Could not create installation token: {response.status_code}",
                status_code=response.status_code,
            )

        token = response.json().get("token")
        if not token:
            raise GitHubAPIError("Installation token missing from GitHub response")

        self._logger.debug(f"Obtained installation token for installation {installation_id}")
        return token

    async def get_installation_client(self, installation_id: int) -> GitHubService:
        """
        Get a GitHub client scoped to one installation.

        Args:
            installation_id: Installation to act on behalf of.

        Returns:
            GitHubService authenticated with a fresh installation token.
        """
        token = await self.get_installation_token(installation_id)
        return GitHubService(token=token, api_url=self._api_url, timeout=self._timeout)
