"""
Review Generator for PR Review Bot.

OpenAI GPT integration producing a structured review from pull request
metadata and file contexts, with caching and retry logic.
"""

import hashlib
import json
import logging
from typing import Any, Optional

from cachetools import TTLCache
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pr_review_bot.config import Settings, get_settings
from pr_review_bot.exceptions import ReviewGenerationError
from pr_review_bot.models.schemas import (
    FileContext,
    FileStatus,
    PullRequestEvent,
    Review,
    ReviewComment,
    ReviewEvent,
)
from pr_review_bot.services.github_service import GitHubService

SYSTEM_PROMPT = """You are a senior engineer reviewing a GitHub pull request.
Review the changed files for bugs, security problems, unclear code and missing
error handling. Only comment on lines that exist in the head version of a file.

Return a JSON object with:
- summary: string (overall review, markdown allowed)
- event: "COMMENT"|"APPROVE"|"REQUEST_CHANGES"
- comments: array of objects with
  - path: string (file path exactly as listed)
  - line: int (line number in the head version of the file)
  - body: string (the review comment)

Return only the JSON object, no other text."""


class ReviewGenerator:
    """
    Generates reviews with OpenAI.

    The prompt contains either the full head content of each changed file or
    only its patch, depending on the full-context flag.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_file_chars: Optional[int] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the Review Generator.

        Args:
            api_key: OpenAI API key. Uses settings if not provided.
            model: Model to use. Uses settings if not provided.
            temperature: Temperature for responses. Uses settings if not provided.
            max_file_chars: Per-file truncation limit. Uses settings if not provided.
            settings: Application settings. Uses cached settings if not provided.
        """
        self._logger = logging.getLogger("pr_review_bot.review_generator")
        settings = settings or get_settings()

        self._api_key = api_key or settings.openai_api_key
        self._model = model or settings.openai_model
        self._temperature = temperature if temperature is not None else settings.openai_temperature
        self._max_tokens = settings.openai_max_tokens
        self._max_file_chars = max_file_chars or settings.max_file_chars

        self._client: Optional[AsyncOpenAI] = None
        if self._api_key and self._api_key != "your_openai_api_key_here":
            self._client = AsyncOpenAI(api_key=self._api_key)

        self._cache: TTLCache = TTLCache(
            maxsize=settings.cache_max_size,
            ttl=settings.cache_ttl,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReviewGenerator":
        """Create the generator from application settings."""
        return cls(settings=settings)

    @property
    def is_configured(self) -> bool:
        """Check if OpenAI is properly configured."""
        return self._client is not None

    def _get_cache_key(self, *args: Any) -> str:
        """Generate cache key from arguments."""
        content = json.dumps(args, sort_keys=True)
        return hashlib.sha256(content.encode()).hexdigest()

    @retry(
        retry=retry_if_exception_type(OpenAIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def _call_openai(
        self,
        system_prompt: str,
        user_prompt: str,
        use_cache: bool = True,
    ) -> Optional[str]:
        """
        Call OpenAI API with retry logic.

        Args:
            system_prompt: System prompt for the model.
            user_prompt: User prompt with the request.
            use_cache: Whether to use cached responses.

        Returns:
            Response text or None if unavailable.
        """
        if not self._client:
            self._logger.debug("OpenAI client not configured")
            return None

        cache_key = self._get_cache_key(self._model, system_prompt, user_prompt)
        if use_cache and cache_key in self._cache:
            self._logger.debug("Returning cached response")
            return self._cache[cache_key]

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except OpenAIError as e:
            self._logger.error(f"OpenAI API error: {e}")
            raise

        result = response.choices[0].message.content

        if use_cache and result:
            self._cache[cache_key] = result

        return result

    def build_prompt(
        self,
        event: PullRequestEvent,
        file_contexts: list[FileContext],
        include_full_context: bool,
    ) -> str:
        """
        Build the user prompt for a pull request.

        Args:
            event: Pull request being reviewed.
            file_contexts: Changed files in listing order.
            include_full_context: Include full file contents, not only patches.

        Returns:
            Prompt text.
        """
        sections = [
            f"Pull request #{event.pr_number} in {event.full_repo_name}: {event.title}",
        ]
        if event.body:
            sections.append(f"Description:\n{event.body}")

        if not file_contexts:
            sections.append("The list of changed files is unavailable.")

        for context in file_contexts:
            changed = context.file
            header = (
                f"### {changed.filename} ({changed.status.value}, "
                f"+{changed.additions}/-{changed.deletions})"
            )
            if changed.previous_filename:
                header += f"\nRenamed from {changed.previous_filename}"
            parts = [header]

            if changed.patch:
                parts.append(f"Patch:\n```diff\n{changed.patch}\n```")

            if include_full_context and changed.status != FileStatus.REMOVED:
                if context.has_content:
                    content = context.full_content
                    if len(content) > self._max_file_chars:
                        content = content[: self._max_file_chars] + "\n... (truncated)"
                    parts.append(f"Full content at head:\n```\n{content}\n```")
                else:
                    parts.append("Full content unavailable.")

            sections.append("\n".join(parts))

        return "\n\n".join(sections)

    async def generate_review(
        self,
        github: GitHubService,
        event: PullRequestEvent,
        file_contexts: list[FileContext],
        include_full_context: bool = True,
    ) -> Review:
        """
        Generate a review for a pull request.

        Args:
            github: Installation-scoped GitHub client (unused by this generator).
            event: Pull request being reviewed.
            file_contexts: Changed files with their content, in listing order.
            include_full_context: Include full file contents in the prompt.

        Returns:
            Generated Review.

        Raises:
            ReviewGenerationError: If OpenAI is unavailable or its answer
                cannot be parsed.
        """
        if not self.is_configured:
            raise ReviewGenerationError("OpenAI API key not configured")

        prompt = self.build_prompt(event, file_contexts, include_full_context)
        response = await self._call_openai(SYSTEM_PROMPT, prompt)
        if not response:
            raise ReviewGenerationError(f"Empty review response for {event.identifier}")

        paths = {c.filename for c in file_contexts}
        review = self._parse_review(response, paths)
        self._logger.info(
            f"Generated review for {event.identifier} with {len(review.comments)} comments"
        )
        return review

    def _parse_review(self, response: str, paths: set[str]) -> Review:
        """Parse the JSON review returned by the model."""
        response = response.strip()

        # Handle markdown code blocks
        if response.startswith("```"):
            lines = response.split("\n")[1:]
            if lines and lines[-1].strip().startswith("```"):
                lines = lines[:-1]
            response = "\n".join(lines)

        try:
            data = json.loads(response)
        except json.JSONDecodeError as e:
            raise ReviewGenerationError(f"Failed to parse review response: {e}") from e

        if not isinstance(data, dict):
            raise ReviewGenerationError("Review response is not a JSON object")

        comments = []
        for item in data.get("comments") or []:
            try:
                comment = ReviewComment.model_validate(item)
            except ValidationError as e:
                self._logger.warning(f"Dropping malformed review comment: {e}")
                continue
            if comment.path not in paths:
                self._logger.warning(f"Dropping comment on unknown path {comment.path}")
                continue
            comments.append(comment)

        try:
            event = ReviewEvent(str(data.get("event", "COMMENT")).upper())
        except ValueError:
            event = ReviewEvent.COMMENT

        return Review(
            body=str(data.get("summary") or ""),
            event=event,
            comments=comments,
        )
