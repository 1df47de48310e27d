"""AI analysis gateway: prompt rendering, structured extraction, and fallbacks."""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from pr_scout.context import AnalysisContext, PromptBudget
from pr_scout.errors import UnknownTaskError
from pr_scout.executor import AIExecutor
from pr_scout.observability import GatewayTelemetry
from pr_scout.prompts import render_prompt
from pr_scout.schema import (
    QUESTIONS_PER_QUIZ,
    AnalysisTask,
    FileGroup,
    GroupingArtifact,
    QuizArtifact,
    QuizQuestion,
)

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_MESSAGE = (
    "AI analysis unavailable. Please ensure the claude CLI or llm is installed."
)
DEFAULT_GROUP_NAME = "All Changes"
DEFAULT_GROUP_EMOJI = "📁"
DEFAULT_GROUP_DESCRIPTION = "All modified files"
RESPONSE_LOG_PREVIEW_CHARS = 500

Artifact = str | GroupingArtifact | QuizArtifact


class MalformedArtifactError(ValueError):
    """Raised when model text holds no valid structured payload."""


def extract_json_object(text: str) -> dict[str, object]:
    """Decode the span from the first ``{`` to the last ``}`` as a JSON object."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        raise MalformedArtifactError("No JSON object found in model output.")
    try:
        payload = json.loads(text[start : end + 1])
    except json.JSONDecodeError as error:
        raise MalformedArtifactError(f"Invalid JSON in model output: {error.msg}") from error
    if not isinstance(payload, dict):
        raise MalformedArtifactError("Model output JSON is not an object.")
    return payload


def default_grouping(files: tuple[str, ...] | list[str]) -> GroupingArtifact:
    """Single catch-all group that holds every file."""
    return GroupingArtifact(
        groups=[
            FileGroup(
                name=DEFAULT_GROUP_NAME,
                emoji=DEFAULT_GROUP_EMOJI,
                description=DEFAULT_GROUP_DESCRIPTION,
                files=list(files),
            )
        ]
    )


def default_quiz() -> QuizArtifact:
    """Placeholder quiz used when no real questions could be generated."""
    return QuizArtifact(
        questions=[
            QuizQuestion(
                question="Did you carefully review all the changes in this PR?",
                options=[
                    "A) Yes, I reviewed everything",
                    "B) No, I skimmed it",
                    "C) I only looked at some files",
                    "D) What PR?",
                ],
                correct="A",
                explanation="A thorough review is essential before approving.",
            )
        ]
    )


_STRUCTURED_SCHEMAS: dict[AnalysisTask, type[GroupingArtifact] | type[QuizArtifact]] = {
    AnalysisTask.GROUP_FILES: GroupingArtifact,
    AnalysisTask.GENERATE_QUIZ: QuizArtifact,
}


class AnalysisGateway:
    """Single entry point for every AI-backed analysis."""

    def __init__(
        self,
        executor: AIExecutor,
        *,
        budget: PromptBudget | None = None,
        telemetry: GatewayTelemetry | None = None,
    ) -> None:
        self._executor = executor
        self._budget = budget or PromptBudget()
        self.telemetry = telemetry or GatewayTelemetry()

    def analyze(self, task: AnalysisTask | str, context: AnalysisContext) -> Artifact:
        """Run ``task`` and return its artifact, degrading instead of raising.

        Prose tasks return the model text unchanged, or ``AI_UNAVAILABLE_MESSAGE``
        when the executor fails. Structured tasks return a validated pydantic
        artifact, or the task default when the executor fails, its output
        cannot be decoded and validated, or a quiz has too few questions.

        Raises:
            UnknownTaskError: ``task`` is not an ``AnalysisTask``.
        """
        try:
            resolved_task = AnalysisTask(task)
        except ValueError as error:
            raise UnknownTaskError(f"Unknown analysis task '{task}'.") from error

        prompt = render_prompt(resolved_task, context, self._budget).render()
        self.telemetry.requests += 1
        logger.debug("Running %s with a %d-char prompt", resolved_task, len(prompt))
        raw_output = self._executor.generate(prompt)
        if raw_output is not None and not raw_output.strip():
            raw_output = None
        if raw_output is None:
            self.telemetry.executor_failures += 1
        else:
            logger.debug(
                "%s response preview: %s",
                resolved_task,
                raw_output[:RESPONSE_LOG_PREVIEW_CHARS],
            )

        schema = _STRUCTURED_SCHEMAS.get(resolved_task)
        if schema is None:
            if raw_output is None:
                self._note_degraded(resolved_task, "executor unavailable")
                return AI_UNAVAILABLE_MESSAGE
            return raw_output

        if raw_output is None:
            self._note_degraded(resolved_task, "executor unavailable")
            return self._default_artifact(resolved_task, context)
        try:
            artifact = schema.model_validate(extract_json_object(raw_output))
        except (MalformedArtifactError, ValidationError) as error:
            self._note_degraded(resolved_task, f"malformed output ({type(error).__name__})")
            return self._default_artifact(resolved_task, context)
        if isinstance(artifact, QuizArtifact) and len(artifact.questions) < QUESTIONS_PER_QUIZ:
            self._note_degraded(
                resolved_task, f"only {len(artifact.questions)} quiz question(s)"
            )
            return self._default_artifact(resolved_task, context)
        return artifact

    def _default_artifact(
        self, task: AnalysisTask, context: AnalysisContext
    ) -> GroupingArtifact | QuizArtifact:
        self.telemetry.defaults_served += 1
        if task is AnalysisTask.GROUP_FILES:
            return default_grouping(context.files)
        return default_quiz()

    def _note_degraded(self, task: AnalysisTask, reason: str) -> None:
        message = f"{task}: {reason}; using fallback content"
        self.telemetry.warnings.append(message)
        logger.warning("AI %s", message)
