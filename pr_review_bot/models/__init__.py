"""
Models package for PR Review Bot.

Contains Pydantic models for data validation and serialization.
"""

from pr_review_bot.models.schemas import (
    ChangedFile,
    FileContext,
    FileStatus,
    PipelineRun,
    PipelineStage,
    PullRequestEvent,
    Review,
    ReviewComment,
    ReviewEvent,
    WebhookAck,
)

__all__ = [
    "ChangedFile",
    "FileContext",
    "FileStatus",
    "PipelineRun",
    "PipelineStage",
    "PullRequestEvent",
    "Review",
    "ReviewComment",
    "ReviewEvent",
    "WebhookAck",
]
