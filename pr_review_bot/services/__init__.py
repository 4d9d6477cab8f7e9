"""
Services package for PR Review Bot.

Contains the GitHub clients, the context-assembly pipeline and the default
review collaborators.
"""

from pr_review_bot.services.context_assembler import ContextAssembler
from pr_review_bot.services.content_fetcher import fetch_file_content
from pr_review_bot.services.dispatcher import WebhookDispatcher
from pr_review_bot.services.github_app import GitHubApp
from pr_review_bot.services.github_service import GitHubService
from pr_review_bot.services.review_generator import ReviewGenerator
from pr_review_bot.services.review_orchestrator import ReviewOrchestrator
from pr_review_bot.services.review_publisher import ReviewPublisher

__all__ = [
    "ContextAssembler",
    "GitHubApp",
    "GitHubService",
    "ReviewGenerator",
    "ReviewOrchestrator",
    "ReviewPublisher",
    "WebhookDispatcher",
    "fetch_file_content",
]
