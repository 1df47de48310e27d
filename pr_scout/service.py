"""Boundary operations that report success or failure in an envelope."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TypeVar

from pr_scout.errors import ReviewError
from pr_scout.models import AnswerFeedback, Envelope, FetchResult, SubmissionReceipt
from pr_scout.orchestrator import ReviewOrchestrator
from pr_scout.schema import FileGroup, QuizQuestion

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _enveloped(operation: Callable[[], T]) -> Envelope[T]:
    """Run ``operation``; domain errors become a failed envelope."""
    try:
        return Envelope.success(operation())
    except ReviewError as error:
        logger.info("Operation failed with %s: %s", type(error).__name__, error)
        return Envelope.failure(error)


class ReviewService:
    """Envelope-returning facade over a ``ReviewOrchestrator``."""

    def __init__(self, orchestrator: ReviewOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> ReviewOrchestrator:
        return self._orchestrator

    def resolve_and_fetch(self, reference: str) -> Envelope[FetchResult]:
        return _enveloped(lambda: self._orchestrator.resolve_and_fetch(reference))

    def summarize(self) -> Envelope[str]:
        return _enveloped(self._orchestrator.summarize)

    def group_files(self, files: Sequence[str] | None = None) -> Envelope[list[FileGroup]]:
        return _enveloped(lambda: self._orchestrator.group_files(files))

    def explain_file(self, path: str) -> Envelope[str]:
        return _enveloped(lambda: self._orchestrator.explain_file(path))

    def generate_quiz(self) -> Envelope[list[QuizQuestion]]:
        return _enveloped(self._orchestrator.generate_quiz)

    def answer(self, label: str) -> Envelope[AnswerFeedback]:
        return _enveloped(lambda: self._orchestrator.answer(label))

    def approve(self) -> Envelope[SubmissionReceipt]:
        return _enveloped(self._orchestrator.approve)

    def request_changes(self, comment: str) -> Envelope[SubmissionReceipt]:
        return _enveloped(lambda: self._orchestrator.request_changes(comment))

    def check_authentication(self) -> Envelope[str]:
        return _enveloped(self._orchestrator.check_authentication)

    def reset(self) -> Envelope[None]:
        return _enveloped(self._orchestrator.reset)
