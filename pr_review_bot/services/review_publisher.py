"""
Review Publisher for PR Review Bot.

Posts a generated review, with its inline comments, to a pull request.
"""

import logging
from typing import Any

from pr_review_bot.models.schemas import PullRequestEvent, Review
from pr_review_bot.services.github_service import GitHubService

DEFAULT_REVIEW_BODY = "Automated review completed."


class ReviewPublisher:
    """Submits reviews through the pull request reviews API."""

    def __init__(self, max_comments: int = 20) -> None:
        """
        Initialize the Review Publisher.

        Args:
            max_comments: Maximum inline comments attached to one review.
        """
        self._logger = logging.getLogger("pr_review_bot.review_publisher")
        self._max_comments = max_comments

    def build_payload(self, review: Review) -> dict[str, Any]:
        """
        Convert a review into the body of a create-review request.

        Args:
            review: Review to publish.

        Returns:
            Dictionary with body, event and comments.
        """
        comments = [
            {
                "path": comment.path,
                "line": comment.line,
                "side": comment.side,
                "body": comment.body,
            }
            for comment in review.comments[: self._max_comments]
        ]

        return {
            "body": review.body or DEFAULT_REVIEW_BODY,
            "event": review.event.value,
            "comments": comments,
        }

    async def submit_review(
        self,
        github: GitHubService,
        event: PullRequestEvent,
        review: Any,
    ) -> dict:
        """
        Submit a review to a pull request.

        Args:
            github: Installation-scoped GitHub client.
            event: Pull request being reviewed.
            review: Review model or its dictionary form.

        Returns:
            The created review as returned by GitHub.
        """
        if not isinstance(review, Review):
            review = Review.model_validate(review)

        payload = self.build_payload(review)

        result = await github.create_review(
            owner=event.owner,
            repo=event.repo,
            pr_number=event.pr_number,
            commit_sha=event.head_sha,
            body=payload["body"],
            event=payload["event"],
            comments=payload["comments"] or None,
        )

        self._logger.info(
            f"Posted review with {len(payload['comments'])} comments to {event.identifier}"
        )
        return result
