"""Immutable records exchanged between the adapter, orchestrator, and callers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ReviewDecision(StrEnum):
    """Review decisions the reviewer can submit."""

    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"


@dataclass(frozen=True, slots=True)
class ChangeSetIdentifier:
    """Owner/repo/number triple identifying one pull request."""

    owner: str
    repo: str
    number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.repo}/pull/{self.number}"

    def __str__(self) -> str:
        return f"{self.full_name}#{self.number}"


@dataclass(frozen=True, slots=True)
class ChangeSetDetails:
    """Normalized PR metadata shown to the reviewer and fed to prompts."""

    title: str
    body: str
    author_login: str
    state: str
    additions: int
    deletions: int
    changed_files: int
    commit_count: int
    base_ref: str
    head_ref: str
    html_url: str = ""


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Everything retrieved from source control for a new session."""

    identifier: ChangeSetIdentifier
    details: ChangeSetDetails
    diff: str
    files: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class AnswerFeedback:
    """Outcome of answering one quiz question."""

    question_index: int
    chosen: str
    correct_label: str
    is_correct: bool
    explanation: str
    quiz_finished: bool


@dataclass(frozen=True, slots=True)
class SubmissionReceipt:
    """Confirmation that a review decision reached source control."""

    identifier: ChangeSetIdentifier
    decision: ReviewDecision
    comment: str = ""


@dataclass(frozen=True, slots=True)
class Envelope(Generic[T]):
    """Success/error wrapper returned by boundary operations."""

    ok: bool
    data: T | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def success(cls, data: T | None = None) -> Envelope[T]:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: Exception) -> Envelope[T]:
        return cls(ok=False, error=str(error), error_type=type(error).__name__)
