"""Comprehension quiz generation and scoring."""

from __future__ import annotations

from collections.abc import Sequence

from pr_scout.context import AnalysisContext, render_group_digest
from pr_scout.gateway import AnalysisGateway, default_quiz
from pr_scout.models import ChangeSetDetails
from pr_scout.schema import (
    QUESTIONS_PER_QUIZ,
    AnalysisTask,
    FileGroup,
    QuizArtifact,
    QuizQuestion,
    QuizResult,
)

PASS_THRESHOLD = 0.66


class QuizEngine:
    """Generate a quiz through the gateway."""

    def __init__(self, gateway: AnalysisGateway) -> None:
        self._gateway = gateway

    def generate(
        self,
        details: ChangeSetDetails,
        diff: str,
        groups: Sequence[FileGroup],
    ) -> list[QuizQuestion]:
        context = AnalysisContext.from_details(
            details,
            diff=diff,
            group_digest=render_group_digest(groups),
        )
        artifact = self._gateway.analyze(AnalysisTask.GENERATE_QUIZ, context)
        if not isinstance(artifact, QuizArtifact):
            artifact = default_quiz()
        return list(artifact.questions[:QUESTIONS_PER_QUIZ])


def score_answers(questions: Sequence[QuizQuestion], answers: Sequence[str]) -> QuizResult:
    """Score answers given in question order; missing answers count as wrong."""
    if not questions:
        raise ValueError("Cannot score an empty quiz.")
    correct = sum(
        1
        for question, answer in zip(questions, answers, strict=False)
        if answer.strip().upper() == question.correct
    )
    score = correct / len(questions)
    return QuizResult(
        correct=correct,
        total=len(questions),
        score=score,
        passed=score >= PASS_THRESHOLD,
    )
