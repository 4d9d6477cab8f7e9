"""
Webhook Dispatcher for PR Review Bot.

Verifies webhook deliveries and starts review runs for opened pull requests.
Runs are scheduled as detached tasks: the HTTP response never waits for them
and their outcome is only visible in the logs.
"""

import asyncio
import hashlib
import hmac
import logging
from typing import Any, Optional

from pr_review_bot.models.schemas import PipelineRun, PullRequestEvent
from pr_review_bot.services.github_app import GitHubApp
from pr_review_bot.services.review_orchestrator import ReviewOrchestrator

REVIEWED_EVENT = "pull_request"
REVIEWED_ACTIONS = frozenset({"opened"})


class WebhookDispatcher:
    """
    Routes verified GitHub webhook events to the Review Orchestrator.

    Exactly one orchestrator run is scheduled per opened pull request
    delivery. Other events are acknowledged and ignored.
    """

    def __init__(
        self,
        github_app: GitHubApp,
        orchestrator: ReviewOrchestrator,
        include_full_context: bool = True,
    ) -> None:
        """
        Initialize the Webhook Dispatcher.

        Args:
            github_app: App identity used to verify deliveries and mint
                installation clients.
            orchestrator: Orchestrator invoked for each opened pull request.
            include_full_context: Flag forwarded to review generation.
        """
        self._logger = logging.getLogger("pr_review_bot.dispatcher")

        self._github_app = github_app
        self._orchestrator = orchestrator
        self._include_full_context = include_full_context
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of review runs still in flight."""
        return len(self._tasks)

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Verify the ``X-Hub-Signature-256`` header of a delivery.

        Args:
            body: Raw request body.
            signature: Header value, ``sha256=<hexdigest>``.

        Returns:
            True if the signature matches the webhook secret.
        """
        secret = self._github_app.webhook_secret
        if not secret or not signature or not signature.startswith("sha256="):
            return False

        expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        return hmac.compare_digest(f"sha256={expected}", signature)

    @staticmethod
    def should_review(event_name: str, payload: dict[str, Any]) -> bool:
        """Check whether a delivery is an opened pull request."""
        return event_name == REVIEWED_EVENT and payload.get("action") in REVIEWED_ACTIONS

    def dispatch(
        self,
        event_name: str,
        payload: dict[str, Any],
        delivery_id: Optional[str] = None,
    ) -> bool:
        """
        Schedule a review run for a verified delivery.

        Args:
            event_name: Value of the ``X-GitHub-Event`` header.
            payload: Decoded webhook body.
            delivery_id: Value of the ``X-GitHub-Delivery`` header.

        Returns:
            True if a review run was scheduled.

        Raises:
            ValueError: If a pull request payload is malformed.
        """
        if not self.should_review(event_name, payload):
            self._logger.debug(
                f"Ignoring {event_name}.{payload.get('action')} delivery {delivery_id}"
            )
            return False

        event = PullRequestEvent.from_webhook(payload)
        self._logger.info(
            f"Scheduling review for {event.identifier} (delivery {delivery_id})"
        )

        task = asyncio.create_task(self._run(event), name=f"review:{event.identifier}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run(self, event: PullRequestEvent) -> Optional[PipelineRun]:
        """Obtain an installation client and run the orchestrator."""
        try:
            github = await self._github_app.get_installation_client(event.installation_id)
        except Exception as e:
            self._logger.error(
                f"Could not authenticate installation {event.installation_id} "
                f"for {event.identifier}: {e}",
                exc_info=True,
            )
            return None

        return await self._orchestrator.handle_pull_request(
            github, event, self._include_full_context
        )

    async def drain(self) -> None:
        """Wait for every in-flight review run to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
