"""Schema contract for AI-generated review artifacts."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OPTION_LABEL_PATTERN = re.compile(r"^\s*\(?([A-Za-z])[).:\s]")
QUIZ_OPTION_COUNT = 4
QUESTIONS_PER_QUIZ = 3


class AnalysisTask(StrEnum):
    """Tasks the analysis gateway knows how to run."""

    SUMMARIZE = "summarize"
    GROUP_FILES = "group-files"
    GENERATE_QUIZ = "generate-quiz"
    EXPLAIN_FILE = "explain-file"


def option_label(option: str) -> str:
    """Return the upper-case choice label of an option like ``"B) Foo"``."""
    match = OPTION_LABEL_PATTERN.match(option)
    if match is not None:
        return match.group(1).upper()
    stripped = option.strip()
    return stripped[:1].upper()


class FileGroup(BaseModel):
    """Feature-coherent group of changed files."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    emoji: str = Field(default="📁")
    description: str = Field(default="")
    files: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        """Reject names that are blank after stripping."""
        stripped = value.strip()
        if not stripped:
            raise ValueError("group name must not be blank")
        return stripped

    @field_validator("emoji")
    @classmethod
    def default_blank_emoji(cls, value: str) -> str:
        return value.strip() or "📁"


class QuizQuestion(BaseModel):
    """Multiple-choice comprehension question with four labeled options."""

    model_config = ConfigDict(extra="ignore")

    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=QUIZ_OPTION_COUNT, max_length=QUIZ_OPTION_COUNT)
    correct: str = Field(min_length=1)
    explanation: str = Field(default="")

    @field_validator("correct")
    @classmethod
    def normalize_correct(cls, value: str) -> str:
        """Accept ``"a"``, ``"A)"`` or ``"A) text"`` and keep only the label."""
        return option_label(value)

    @model_validator(mode="after")
    def validate_labels(self) -> QuizQuestion:
        """Require distinct option labels that include the correct one."""
        labels = self.labels
        if len(set(labels)) != len(labels):
            raise ValueError("option labels must be distinct")
        if self.correct not in labels:
            raise ValueError(f"correct label '{self.correct}' is not one of {labels}")
        return self

    @property
    def labels(self) -> list[str]:
        return [option_label(option) for option in self.options]


class GroupingArtifact(BaseModel):
    """Trusted shape of the group-files task output."""

    model_config = ConfigDict(extra="ignore")

    groups: list[FileGroup] = Field(default_factory=list)


class QuizArtifact(BaseModel):
    """Trusted shape of the generate-quiz task output."""

    model_config = ConfigDict(extra="ignore")

    questions: list[QuizQuestion] = Field(min_length=1)


class QuizResult(BaseModel):
    """Scored quiz outcome."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    correct: int = Field(ge=0)
    total: int = Field(ge=1)
    score: float = Field(ge=0.0, le=1.0)
    passed: bool

    @property
    def percent(self) -> int:
        return round(self.score * 100)
