"""
Review Orchestrator for PR Review Bot.

Runs the review pipeline for one pull request:
listing -> fetching -> generating -> submitting.
"""

import logging
import time
from typing import Any, Awaitable, Callable, Optional, Union

from pr_review_bot.models.schemas import (
    FileContext,
    PipelineRun,
    PipelineStage,
    PullRequestEvent,
)
from pr_review_bot.services.context_assembler import ContextAssembler
from pr_review_bot.services.github_service import GitHubService

# (github, event, file_contexts, include_full_context) -> review
GenerateReview = Callable[
    [GitHubService, PullRequestEvent, list[FileContext], bool], Awaitable[Any]
]
# (github, event, review) -> None
SubmitReview = Callable[[GitHubService, PullRequestEvent, Any], Awaitable[Any]]


class ReviewOrchestrator:
    """
    Coordinates context assembly, review generation and review submission.

    Every error raised while handling a pull request is caught here, logged
    with the pull request identifier and ends that run. Nothing is retried.
    """

    def __init__(
        self,
        generate_review: GenerateReview,
        submit_review: SubmitReview,
        assembler: Optional[ContextAssembler] = None,
        deduplicate_in_flight: bool = False,
    ) -> None:
        """
        Initialize the Review Orchestrator.

        Args:
            generate_review: Review-generation collaborator.
            submit_review: Review-submission collaborator.
            assembler: Context assembler. Created if not provided.
            deduplicate_in_flight: Skip events for a pull request that
                already has a run in progress.
        """
        self._logger = logging.getLogger("pr_review_bot.review_orchestrator")

        self._generate_review = generate_review
        self._submit_review = submit_review
        self._assembler = assembler or ContextAssembler()
        self._deduplicate_in_flight = deduplicate_in_flight
        self._in_flight: set[str] = set()

    async def handle_pull_request(
        self,
        github: GitHubService,
        event: Union[PullRequestEvent, dict],
        include_full_context: bool = True,
    ) -> PipelineRun:
        """
        Produce and submit a review for a pull request.

        Args:
            github: GitHub client scoped to the event's installation.
            event: Pull request event, or the raw webhook payload.
            include_full_context: Whether review generation receives full
                file contents.

        Returns:
            PipelineRun describing the last stage reached.
        """
        start_time = time.time()
        run = PipelineRun(identifier="#unknown")
        key: Optional[str] = None

        def enter(stage: PipelineStage) -> None:
            run.stage = stage

        try:
            run.identifier = self._describe(event)
            self._logger.info(f"Received a pull request event for {run.identifier}")

            if not isinstance(event, PullRequestEvent):
                event = PullRequestEvent.from_webhook(event)
            run.identifier = event.identifier

            if self._deduplicate_in_flight:
                if event.identifier in self._in_flight:
                    self._logger.warning(
                        f"Review already in progress for {event.identifier}, skipping"
                    )
                    run.stage = PipelineStage.SKIPPED
                    return run
                key = event.identifier
                self._in_flight.add(key)

            self._logger.info(
                f"PR info: id={event.repository_id} "
                f"full_name={event.full_name or event.full_repo_name} url={event.html_url}"
            )

            contexts = await self._assembler.assemble(github, event, on_stage=enter)
            run.files = len(contexts)
            run.files_with_content = sum(1 for c in contexts if c.has_content)

            run.stage = PipelineStage.GENERATING
            review = await self._generate_review(
                github, event, contexts, include_full_context
            )

            run.stage = PipelineStage.SUBMITTING
            await self._submit_review(github, event, review)

            run.stage = PipelineStage.DONE
            self._logger.info(f"Review submitted for {run.identifier}")

        except Exception as e:
            self._logger.error(
                f"Error handling pull request {run.identifier} "
                f"during {run.stage.value}: {e}",
                exc_info=True,
            )
            run.error = str(e)
            run.failed_stage = run.stage
            run.stage = PipelineStage.FAILED

        finally:
            if key is not None:
                self._in_flight.discard(key)
            run.duration = time.time() - start_time

        return run

    @staticmethod
    def _describe(event: Union[PullRequestEvent, dict]) -> str:
        """Best-effort identifier for an event that may not be validated yet."""
        if isinstance(event, PullRequestEvent):
            return event.identifier
        if not isinstance(event, dict):
            return "#unknown"

        pull_request = event.get("pull_request")
        repository = event.get("repository")
        number = pull_request.get("number") if isinstance(pull_request, dict) else None
        full_name = repository.get("full_name") if isinstance(repository, dict) else None
        return f"{full_name or ''}#{number}"
