"""
Tests for GitHub Service.

Tests GitHub API integration functionality.
"""

import time

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from pr_review_bot.exceptions import (
    GitHubAPIError,
    GitHubAuthenticationError,
    GitHubNotFoundError,
)
from pr_review_bot.models.schemas import ChangedFile, FileStatus
from pr_review_bot.services.github_service import (
    FILES_PER_PAGE,
    MAX_RATE_LIMIT_WAIT,
    GitHubService,
)


def make_response(status_code: int = 200, json_data=None, headers=None) -> MagicMock:
    """Build a mocked httpx response."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data
    response.content = b"{}" if json_data is not None else b""
    response.headers = headers or {"X-RateLimit-Remaining": "4999"}
    return response


def file_entry(index: int) -> dict:
    """Build one entry of the PR files listing."""
    return {"filename": f"file_{index}.py", "status": "modified", "changes": 1}


class TestGitHubService:
    """Tests for GitHubService class."""

    def test_init(self):
        """Test GitHubService initialization."""
        service = GitHubService(token="test-token")
        assert service._token == "test-token"
        assert service.is_configured is True

    def test_init_without_token(self):
        """Test initialization without token."""
        service = GitHubService(token="")
        assert service.is_configured is False

    def test_get_headers(self):
        """Test header generation."""
        service = GitHubService(token="test-token")
        headers = service._get_headers()

        assert headers["Authorization"] == "token test-token"
        assert headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_make_request_success(self):
        """Test successful API request."""
        service = GitHubService(token="test-token")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(json_data={"key": "value"})
            )

            result = await service._make_request("GET", "/test")

        assert result == {"key": "value"}

    @pytest.mark.asyncio
    async def test_make_request_404(self):
        """Test 404 response handling."""
        service = GitHubService(token="test-token")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(status_code=404)
            )

            with pytest.raises(GitHubNotFoundError):
                await service._make_request("GET", "/test")

    @pytest.mark.asyncio
    async def test_make_request_401(self):
        """Test expired installation token handling."""
        service = GitHubService(token="test-token")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(status_code=401)
            )

            with pytest.raises(GitHubAuthenticationError):
                await service._make_request("GET", "/test")

    @pytest.mark.asyncio
    async def test_make_request_server_error(self):
        """Test 5xx response handling."""
        service = GitHubService(token="test-token")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(status_code=502)
            )

            with pytest.raises(GitHubAPIError) as exc_info:
                await service._make_request("GET", "/test")

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_make_request_network_error(self):
        """Test transport errors are wrapped."""
        service = GitHubService(token="test-token")

        with patch("httpx.AsyncClient") as mock_client:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                side_effect=httpx.ConnectError("connection refused")
            )

            with pytest.raises(GitHubAPIError):
                await service._make_request("GET", "/test")

    @pytest.mark.asyncio
    async def test_list_pull_request_files_single_page(self):
        """Test listing files that fit on one page."""
        service = GitHubService(token="test-token")

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = [file_entry(1), file_entry(2)]

            files = await service.list_pull_request_files("owner", "repo", 42)

        assert [f.filename for f in files] == ["file_1.py", "file_2.py"]
        assert all(isinstance(f, ChangedFile) for f in files)
        assert mock_request.call_count == 1
        assert mock_request.call_args[0][1] == "/repos/owner/repo/pulls/42/files"
        assert mock_request.call_args[1]["params"] == {"per_page": FILES_PER_PAGE, "page": 1}

    @pytest.mark.asyncio
    async def test_list_pull_request_files_paginates(self):
        """Test listing keeps fetching pages until a short page."""
        service = GitHubService(token="test-token")
        first_page = [file_entry(i) for i in range(FILES_PER_PAGE)]
        second_page = [file_entry(FILES_PER_PAGE)]

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.side_effect = [first_page, second_page]

            files = await service.list_pull_request_files("owner", "repo", 42)

        assert len(files) == FILES_PER_PAGE + 1
        assert files[0].filename == "file_0.py"
        assert files[-1].filename == f"file_{FILES_PER_PAGE}.py"
        assert mock_request.call_args_list[1][1]["params"]["page"] == 2

    @pytest.mark.asyncio
    async def test_list_pull_request_files_error(self):
        """Test listing errors propagate."""
        service = GitHubService(token="test-token")

        with patch.object(
            service, "_make_request", new_callable=AsyncMock,
            side_effect=GitHubNotFoundError("/repos/owner/repo/pulls/1/files"),
        ):
            with pytest.raises(GitHubNotFoundError):
                await service.list_pull_request_files("owner", "repo", 1)

    @pytest.mark.asyncio
    async def test_list_pull_request_files_statuses(self):
        """Test file statuses are parsed."""
        service = GitHubService(token="test-token")

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = [
                {"filename": "gone.py", "status": "removed"},
            ]

            files = await service.list_pull_request_files("owner", "repo", 1)

        assert files[0].status == FileStatus.REMOVED

    @pytest.mark.asyncio
    async def test_get_contents(self):
        """Test reading a contents entry at a ref."""
        service = GitHubService(token="test-token")

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"content": "eA==", "encoding": "base64"}

            result = await service.get_contents("owner", "repo", "src/my file.py", "abc123")

        assert result["content"] == "eA=="
        args, kwargs = mock_request.call_args
        assert args[1] == "/repos/owner/repo/contents/src/my%20file.py"
        assert kwargs["params"] == {"ref": "abc123"}

    @pytest.mark.asyncio
    async def test_create_review(self):
        """Test creating a PR review."""
        service = GitHubService(token="test-token")

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"id": 1}

            result = await service.create_review(
                owner="owner",
                repo="repo",
                pr_number=1,
                commit_sha="abc123",
                body="Review summary",
                event="COMMENT",
            )

        assert result == {"id": 1}
        assert "comments" not in mock_request.call_args[1]["json"]

    @pytest.mark.asyncio
    async def test_create_review_with_comments(self):
        """Test creating a PR review with inline comments."""
        service = GitHubService(token="test-token")

        comments = [
            {"path": "test.py", "line": 1, "body": "Comment 1"},
            {"path": "test.py", "line": 2, "body": "Comment 2"},
        ]

        with patch.object(service, "_make_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"id": 1}

            await service.create_review(
                owner="owner",
                repo="repo",
                pr_number=1,
                commit_sha="abc123",
                body="Review",
                comments=comments,
            )

        call_kwargs = mock_request.call_args[1]
        assert call_kwargs["json"]["comments"] == comments
        assert call_kwargs["json"]["commit_id"] == "abc123"

    @pytest.mark.asyncio
    async def test_make_request_waits_for_rate_limit_reset(self):
        """Test a nearly exhausted rate limit waits until the window resets."""
        service = GitHubService(token="test-token")
        service._rate_limit_remaining = 5
        service._rate_limit_reset = int(time.time()) + 30

        with patch("httpx.AsyncClient") as mock_client, \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(json_data={})
            )

            await service._make_request("GET", "/test")

        delay = mock_sleep.call_args[0][0]
        assert 20 < delay <= 30

    @pytest.mark.asyncio
    async def test_make_request_rate_limit_wait_is_capped(self):
        """Test the wait never exceeds the configured maximum."""
        service = GitHubService(token="test-token")
        service._rate_limit_remaining = 0
        service._rate_limit_reset = int(time.time()) + 3600

        with patch("httpx.AsyncClient") as mock_client, \
                patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            mock_client.return_value.__aenter__.return_value.request = AsyncMock(
                return_value=make_response(
                    json_data={},
                    headers={"X-RateLimit-Remaining": "4999", "X-RateLimit-Reset": "0"},
                )
            )

            await service._make_request("GET", "/test")

        mock_sleep.assert_awaited_once_with(MAX_RATE_LIMIT_WAIT)
        assert service._rate_limit_remaining == 4999
