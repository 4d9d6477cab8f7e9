"""
Context assembler for PR Review Bot.

Lists the files changed by a pull request and fetches each file's full
content at the head revision concurrently.
"""

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from pr_review_bot.models.schemas import (
    ChangedFile,
    FileContext,
    PipelineStage,
    PullRequestEvent,
)
from pr_review_bot.services.content_fetcher import fetch_file_content
from pr_review_bot.services.github_service import GitHubService


class ContextAssembler:
    """
    Builds one FileContext per changed file of a pull request.

    The output always matches the file listing one to one and in order;
    files whose content could not be read are kept with ``full_content=None``.
    """

    def __init__(self, max_concurrency: int = 0) -> None:
        """
        Initialize the Context Assembler.

        Args:
            max_concurrency: Maximum parallel fetches per pull request.
                0 fetches every file at once.
        """
        self._logger = logging.getLogger("pr_review_bot.context_assembler")
        self._max_concurrency = max_concurrency

    async def list_changed_files(
        self,
        github: GitHubService,
        event: PullRequestEvent,
    ) -> Optional[list[ChangedFile]]:
        """
        List changed files, returning None if the listing failed.

        Args:
            github: Installation-scoped GitHub client.
            event: Pull request being reviewed.

        Returns:
            Changed files in listing order, or None on failure.
        """
        try:
            return await github.list_pull_request_files(
                owner=event.owner,
                repo=event.repo,
                pr_number=event.pr_number,
            )
        except Exception as e:
            self._logger.error(
                f"Error fetching files with context for {event.identifier}: {e}",
                exc_info=True,
            )
            return None

    async def fetch_contexts(
        self,
        github: GitHubService,
        event: PullRequestEvent,
        files: list[ChangedFile],
    ) -> list[FileContext]:
        """
        Fetch the head content of every file in parallel.

        Args:
            github: Installation-scoped GitHub client.
            event: Pull request being reviewed.
            files: Files to fetch, in listing order.

        Returns:
            FileContext records in the same order as ``files``.
        """
        limiter = (
            asyncio.Semaphore(self._max_concurrency)
            if self._max_concurrency
            else contextlib.nullcontext()
        )

        async def fetch(changed_file: ChangedFile) -> Optional[str]:
            async with limiter:
                return await fetch_file_content(
                    github, event.owner, event.repo, changed_file.filename, event.head_sha
                )

        # gather keeps results in argument order regardless of completion order
        contents = await asyncio.gather(*(fetch(f) for f in files))

        contexts = [
            FileContext(file=changed_file, full_content=content)
            for changed_file, content in zip(files, contents)
        ]
        self._log_contexts(event, contexts)
        return contexts

    async def assemble(
        self,
        github: GitHubService,
        event: PullRequestEvent,
        on_stage: Optional[Callable[[PipelineStage], None]] = None,
    ) -> list[FileContext]:
        """
        Assemble the full context of a pull request.

        Args:
            github: Installation-scoped GitHub client.
            event: Pull request being reviewed.
            on_stage: Called with LISTING and FETCHING as each step starts.

        Returns:
            One FileContext per changed file in listing order. Empty if the
            files could not be listed.
        """
        if on_stage:
            on_stage(PipelineStage.LISTING)
        files = await self.list_changed_files(github, event)
        if not files:
            return []

        if on_stage:
            on_stage(PipelineStage.FETCHING)
        return await self.fetch_contexts(github, event, files)

    def _log_contexts(self, event: PullRequestEvent, contexts: list[FileContext]) -> None:
        """Log a summary of assembled contexts."""
        missing = sum(1 for c in contexts if not c.has_content)
        self._logger.info(
            f"Assembled {len(contexts)} file contexts for {event.identifier} "
            f"({missing} without content)"
        )
        for context in contexts:
            size = len(context.full_content) if context.has_content else 0
            self._logger.debug(
                f"  {context.file.status.value:<9} {context.filename} ({size} chars)"
            )
