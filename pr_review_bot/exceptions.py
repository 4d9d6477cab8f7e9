"""
Exceptions for PR Review Bot.

Typed errors raised by the GitHub client and the default review collaborators.
"""

from typing import Optional


class PRReviewBotError(Exception):
    """Base exception for PR Review Bot errors."""


class GitHubAPIError(PRReviewBotError):
    """Raised when a GitHub API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class GitHubNotFoundError(GitHubAPIError):
    """Raised when a GitHub resource does not exist."""

    def __init__(self, endpoint: str) -> None:
        super().__init__(f"Resource not found: {endpoint}", status_code=404)
        self.endpoint = endpoint


class GitHubAuthenticationError(GitHubAPIError):
    """Raised when GitHub rejects the app or installation credentials."""

    def __init__(self, installation_id: Optional[int] = None, status_code: int = 401) -> None:
        message = "GitHub authentication failed"
        if installation_id:
            message += f" for installation {installation_id}"
        super().__init__(message, status_code=status_code)
        self.installation_id = installation_id


class GitHubAppNotConfiguredError(PRReviewBotError):
    """Raised when the GitHub App identity or private key is missing."""


class ReviewGenerationError(PRReviewBotError):
    """Raised when a review cannot be produced from the model response."""
