"""
Pytest fixtures for PR Review Bot tests.

Provides reusable test fixtures, mocks, and sample webhook data.
"""

import hashlib
import hmac
import json
from typing import Any, Generator
from unittest.mock import AsyncMock

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from pr_review_bot.config import Settings
from pr_review_bot.main import create_app
from pr_review_bot.models.schemas import ChangedFile, PullRequestEvent, Review
from pr_review_bot.services.dispatcher import WebhookDispatcher
from pr_review_bot.services.github_app import GitHubApp
from pr_review_bot.services.github_service import GitHubService
from pr_review_bot.services.review_orchestrator import ReviewOrchestrator

WEBHOOK_SECRET = "test-webhook-secret"


def make_pull_request_payload(
    number: int = 42,
    action: str = "opened",
    owner: str = "octocat",
    repo: str = "hello-world",
    head_sha: str = "abc123",
    installation_id: int = 99,
) -> dict[str, Any]:
    """Build a pull_request webhook payload."""
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "title": "Add greeting",
            "body": "Adds a friendly greeting.",
            "html_url": f"https://github.com/{owner}/{repo}/pull/{number}",
            "head": {"sha": head_sha, "ref": "feature"},
            "base": {"sha": "def456", "ref": "main"},
        },
        "repository": {
            "id": 1296269,
            "name": repo,
            "full_name": f"{owner}/{repo}",
            "html_url": f"https://github.com/{owner}/{repo}",
            "owner": {"login": owner},
        },
        "installation": {"id": installation_id},
    }


def make_changed_file(filename: str, status: str = "modified", **kwargs: Any) -> ChangedFile:
    """Build a changed file entry."""
    return ChangedFile(
        filename=filename,
        status=status,
        additions=kwargs.pop("additions", 3),
        deletions=kwargs.pop("deletions", 1),
        changes=kwargs.pop("changes", 4),
        patch=kwargs.pop("patch", "@@ -1 +1 @@\n-old\n+new"),
        **kwargs,
    )


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Compute the X-Hub-Signature-256 header value for a body."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def webhook_request(payload: dict[str, Any], event: str = "pull_request") -> dict[str, Any]:
    """Build signed request arguments for the webhook endpoint."""
    body = json.dumps(payload).encode("utf-8")
    return {
        "content": body,
        "headers": {
            "Content-Type": "application/json",
            "X-GitHub-Event": event,
            "X-GitHub-Delivery": "delivery-1",
            "X-Hub-Signature-256": sign(body),
        },
    }


@pytest.fixture(scope="session")
def private_key_pem() -> str:
    """Provide a freshly generated RSA private key in PEM format."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def mock_settings(private_key_pem) -> Settings:
    """Provide test settings."""
    return Settings(
        github_app_id="12345",
        github_private_key=private_key_pem,
        github_webhook_secret=WEBHOOK_SECRET,
        openai_api_key="test-api-key",
        log_level="DEBUG",
    )


@pytest.fixture
def pull_request_payload() -> dict[str, Any]:
    """Provide a pull_request.opened webhook payload."""
    return make_pull_request_payload()


@pytest.fixture
def pull_request_event(pull_request_payload) -> PullRequestEvent:
    """Provide the decoded pull request event."""
    return PullRequestEvent.from_webhook(pull_request_payload)


@pytest.fixture
def mock_github() -> AsyncMock:
    """Provide a mocked installation-scoped GitHub client."""
    github = AsyncMock(spec=GitHubService)
    github.list_pull_request_files = AsyncMock(return_value=[])
    github.get_contents = AsyncMock(return_value=None)
    github.create_review = AsyncMock(return_value={"id": 1})
    return github


@pytest.fixture
def github_app(private_key_pem, mock_github) -> GitHubApp:
    """Provide a GitHub App whose installation clients are mocked."""
    app = GitHubApp(
        app_id="12345",
        private_key=private_key_pem,
        webhook_secret=WEBHOOK_SECRET,
    )
    app.get_installation_client = AsyncMock(return_value=mock_github)
    return app


@pytest.fixture
def mock_generate_review() -> AsyncMock:
    """Provide a mocked review-generation collaborator."""
    return AsyncMock(return_value=Review(body="Looks good"))


@pytest.fixture
def mock_submit_review() -> AsyncMock:
    """Provide a mocked review-submission collaborator."""
    return AsyncMock(return_value={"id": 1})


@pytest.fixture
def orchestrator(mock_generate_review, mock_submit_review) -> ReviewOrchestrator:
    """Provide an orchestrator wired to mocked collaborators."""
    return ReviewOrchestrator(
        generate_review=mock_generate_review,
        submit_review=mock_submit_review,
    )


@pytest.fixture
def dispatcher(github_app, orchestrator) -> WebhookDispatcher:
    """Provide a dispatcher with mocked collaborators."""
    return WebhookDispatcher(github_app=github_app, orchestrator=orchestrator)


@pytest.fixture
def app(mock_settings, dispatcher):
    """Provide the webhook application."""
    return create_app(settings=mock_settings, dispatcher=dispatcher)


@pytest.fixture
def test_client(app) -> Generator[TestClient, None, None]:
    """Provide a test client for API testing."""
    with TestClient(app) as client:
        yield client
