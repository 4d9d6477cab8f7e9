"""
Pydantic schemas for PR Review Bot.

Defines the pull request event, changed files, per-file context and reviews
that flow through the review pipeline.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileStatus(str, Enum):
    """Change status reported by GitHub for a file in a pull request."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"
    COPIED = "copied"
    CHANGED = "changed"
    UNCHANGED = "unchanged"


class ReviewEvent(str, Enum):
    """Review actions accepted by GitHub."""

    COMMENT = "COMMENT"
    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"


class PipelineStage(str, Enum):
    """Stages of a single review pipeline run."""

    RECEIVED = "received"
    LISTING = "listing"
    FETCHING = "fetching"
    GENERATING = "generating"
    SUBMITTING = "submitting"
    DONE = "done"
    FAILED = "failed"
    SKIPPED = "skipped"


class PullRequestEvent(BaseModel):
    """
    A pull request event decoded from a GitHub webhook payload.

    Attributes:
        owner: Repository owner login.
        repo: Repository name.
        pr_number: Pull request number.
        head_sha: Commit SHA at the head of the pull request branch.
        installation_id: GitHub App installation the event belongs to.
        base_sha: Commit SHA of the base branch.
        title: Pull request title.
        body: Pull request description.
        html_url: Pull request URL.
        repository_id: Numeric repository identifier.
        full_name: Repository full name (owner/repo).
        action: Webhook action that produced the event.
    """

    model_config = ConfigDict(frozen=True)

    owner: str = Field(..., min_length=1, description="Repository owner")
    repo: str = Field(..., min_length=1, description="Repository name")
    pr_number: int = Field(..., ge=1, description="Pull request number")
    head_sha: str = Field(..., min_length=1, description="Head revision")
    installation_id: int = Field(..., ge=1, description="App installation ID")
    base_sha: Optional[str] = Field(None, description="Base revision")
    title: str = Field(default="", description="Pull request title")
    body: Optional[str] = Field(None, description="Pull request description")
    html_url: Optional[str] = Field(None, description="Pull request URL")
    repository_id: Optional[int] = Field(None, description="Repository ID")
    full_name: Optional[str] = Field(None, description="Repository full name")
    action: str = Field(default="opened", description="Webhook action")

    @classmethod
    def from_webhook(cls, payload: dict[str, Any]) -> "PullRequestEvent":
        """
        Build an event from a raw ``pull_request`` webhook payload.

        Args:
            payload: Decoded webhook JSON body.

        Returns:
            PullRequestEvent instance.

        Raises:
            ValueError: If the payload lacks the pull request, repository or
                installation sections, or one of them has the wrong shape
                (pydantic ValidationError is a subclass).
        """
        pull_request = payload.get("pull_request")
        repository = payload.get("repository")
        installation = payload.get("installation")

        if not isinstance(pull_request, dict) or not isinstance(repository, dict):
            raise ValueError("Payload is missing pull_request or repository")
        if not isinstance(installation, dict):
            raise ValueError("Payload is missing installation")

        owner = repository.get("owner") or {}
        head = pull_request.get("head") or {}
        base = pull_request.get("base") or {}

        if not isinstance(owner, dict):
            raise ValueError("Payload repository owner is not an object")
        if not isinstance(head, dict) or not isinstance(base, dict):
            raise ValueError("Payload pull_request head or base is not an object")

        return cls(
            owner=owner.get("login", ""),
            repo=repository.get("name", ""),
            pr_number=pull_request.get("number", 0),
            head_sha=head.get("sha", ""),
            base_sha=base.get("sha"),
            installation_id=installation.get("id", 0),
            title=pull_request.get("title") or "",
            body=pull_request.get("body"),
            html_url=pull_request.get("html_url"),
            repository_id=repository.get("id"),
            full_name=repository.get("full_name"),
            action=payload.get("action", "opened"),
        )

    @property
    def full_repo_name(self) -> str:
        """Get full repository name in owner/repo format."""
        return f"{self.owner}/{self.repo}"

    @property
    def identifier(self) -> str:
        """Get the pull request identifier used in logs (owner/repo#number)."""
        return f"{self.full_repo_name}#{self.pr_number}"


class ChangedFile(BaseModel):
    """A file touched by a pull request, as listed by GitHub."""

    model_config = ConfigDict(extra="ignore")

    filename: str = Field(..., min_length=1, description="Path of the file")
    status: FileStatus = Field(default=FileStatus.MODIFIED, description="Change status")
    additions: int = Field(default=0, ge=0, description="Lines added")
    deletions: int = Field(default=0, ge=0, description="Lines deleted")
    changes: int = Field(default=0, ge=0, description="Total lines changed")
    patch: Optional[str] = Field(None, description="Unified diff for the file")
    previous_filename: Optional[str] = Field(None, description="Path before a rename")
    sha: Optional[str] = Field(None, description="Blob SHA")
    blob_url: Optional[str] = None
    raw_url: Optional[str] = None
    contents_url: Optional[str] = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Map unknown statuses to ``changed``."""
        if isinstance(v, str):
            v = v.lower().strip()
            if v not in {s.value for s in FileStatus}:
                return FileStatus.CHANGED
        return v

    @classmethod
    def from_github(cls, data: dict[str, Any]) -> "ChangedFile":
        """Build a changed file from an item of the PR files listing."""
        return cls.model_validate(data)


class FileContext(BaseModel):
    """
    A changed file together with its full content at the head revision.

    ``full_content`` is None when the content could not be retrieved.
    """

    file: ChangedFile
    full_content: Optional[str] = Field(None, description="File content at head")

    @property
    def filename(self) -> str:
        """Path of the underlying changed file."""
        return self.file.filename

    @property
    def has_content(self) -> bool:
        """Whether the file content was retrieved."""
        return self.full_content is not None


class ReviewComment(BaseModel):
    """An inline review comment anchored to a line of a changed file."""

    path: str = Field(..., min_length=1, description="File path")
    line: int = Field(..., ge=1, description="Line in the head version of the file")
    body: str = Field(..., min_length=1, description="Comment text")
    side: str = Field(default="RIGHT", description="Diff side (LEFT or RIGHT)")


class Review(BaseModel):
    """Structured review produced by review generation."""

    body: str = Field(default="", description="Review summary")
    event: ReviewEvent = Field(default=ReviewEvent.COMMENT, description="Review action")
    comments: list[ReviewComment] = Field(default_factory=list, description="Inline comments")


class PipelineRun(BaseModel):
    """Outcome of one review pipeline run, used for logging and inspection."""

    identifier: str = Field(..., description="Pull request identifier")
    stage: PipelineStage = Field(default=PipelineStage.RECEIVED, description="Last stage reached")
    files: int = Field(default=0, ge=0, description="Number of file contexts assembled")
    files_with_content: int = Field(default=0, ge=0, description="Contexts with content")
    error: Optional[str] = Field(None, description="Failure message, if any")
    failed_stage: Optional[PipelineStage] = Field(None, description="Stage that raised")
    started_at: datetime = Field(default_factory=datetime.utcnow, description="Run start")
    duration: float = Field(default=0.0, ge=0.0, description="Run duration in seconds")

    @property
    def succeeded(self) -> bool:
        """Whether the run reached the final stage."""
        return self.stage == PipelineStage.DONE


class WebhookAck(BaseModel):
    """Response body for accepted webhook deliveries."""

    status: str = Field(..., description="accepted or ignored")
    event: Optional[str] = Field(None, description="GitHub event name")
    delivery: Optional[str] = Field(None, description="GitHub delivery ID")
