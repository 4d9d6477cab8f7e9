"""
Content fetcher for PR Review Bot.

Reads the full text of a single file at a revision. Failures are contained
per file: every error is logged and reported as missing content.
"""

import base64
import logging
from typing import Optional

from pr_review_bot.services.github_service import GitHubService

logger = logging.getLogger("pr_review_bot.content_fetcher")


async def fetch_file_content(
    github: GitHubService,
    owner: str,
    repo: str,
    path: str,
    ref: str,
) -> Optional[str]:
    """
    Fetch the decoded content of a file.

    Args:
        github: Installation-scoped GitHub client.
        owner: Repository owner.
        repo: Repository name.
        path: File path.
        ref: Commit SHA to read the file at.

    Returns:
        File content, or None if the path has no text content at ``ref``
        or could not be retrieved.
    """
    if not path:
        logger.warning(f"Skipping content fetch for empty path in {owner}/{repo}")
        return None

    try:
        data = await github.get_contents(owner, repo, path, ref)

        # Directories come back as a listing
        if not isinstance(data, dict) or "content" not in data:
            logger.debug(f"No file content available for {path} at {ref}")
            return None

        content = data.get("content") or ""
        encoding = data.get("encoding", "base64")

        if encoding == "base64":
            return base64.b64decode(content).decode("utf-8")

        # Files over 1MB are reported with encoding "none" and no content
        if encoding == "none" or not content:
            logger.debug(f"Content of {path} is too large to be inlined")
            return None

        return content

    except Exception as e:
        logger.error(f"Failed to fetch content for {path}: {e}")
        return None
