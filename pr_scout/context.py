"""Context payload construction and prompt-budget helpers."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, field

from pr_scout.models import ChangeSetDetails
from pr_scout.schema import AnalysisTask, FileGroup

DIFF_HEADER_PREFIX = "diff --git "


@dataclass(frozen=True, slots=True)
class PromptBudget:
    """Maximum diff characters sent to the model, per task."""

    summary_chars: int = 10_000
    grouping_chars: int = 15_000
    quiz_chars: int = 12_000
    explanation_chars: int = 8_000

    def for_task(self, task: AnalysisTask) -> int:
        return {
            AnalysisTask.SUMMARIZE: self.summary_chars,
            AnalysisTask.GROUP_FILES: self.grouping_chars,
            AnalysisTask.GENERATE_QUIZ: self.quiz_chars,
            AnalysisTask.EXPLAIN_FILE: self.explanation_chars,
        }[task]


@dataclass(frozen=True, slots=True)
class AnalysisContext:
    """Inputs a gateway task may draw on when rendering its prompt."""

    title: str = ""
    description: str = ""
    author: str = ""
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0
    head_ref: str = ""
    base_ref: str = ""
    diff: str = ""
    files: tuple[str, ...] = field(default_factory=tuple)
    file_path: str = ""
    group_digest: str = ""

    @classmethod
    def from_details(cls, details: ChangeSetDetails, **overrides: object) -> AnalysisContext:
        """Build a context from PR metadata plus task-specific fields."""
        return cls(
            title=details.title,
            description=details.body,
            author=details.author_login,
            additions=details.additions,
            deletions=details.deletions,
            changed_files=details.changed_files,
            head_ref=details.head_ref,
            base_ref=details.base_ref,
            **overrides,  # type: ignore[arg-type]
        )


def truncate(text: str, limit: int) -> str:
    """Keep at most ``limit`` characters from the start of ``text``."""
    if limit < 0:
        raise ValueError("limit must be non-negative")
    return text[:limit]


def extract_file_diff(diff: str, path: str) -> str:
    """Return the diff segment for ``path``, or an empty string when absent."""
    if not path:
        return ""
    escaped = re.escape(path)
    pattern = re.compile(
        rf"^diff --git a/{escaped} b/{escaped}\r?$.*?(?=^diff --git |\Z)",
        re.DOTALL | re.MULTILINE,
    )
    match = pattern.search(diff)
    if match is None:
        return ""
    return match.group(0)


def render_group_digest(groups: Sequence[FileGroup]) -> str:
    """Render one line per group: emoji, name, and its files."""
    return "\n".join(f"{group.emoji} {group.name}: {', '.join(group.files)}" for group in groups)
