"""Prompt templates for each analysis task."""

from __future__ import annotations

from dataclasses import dataclass

from pr_scout.context import AnalysisContext, PromptBudget, truncate
from pr_scout.errors import UnknownTaskError
from pr_scout.schema import AnalysisTask

PROMPT_SEPARATOR = "\n\n---\n\n"

SUMMARY_SYSTEM_PROMPT = """\
You are a code review assistant. Analyze this PR and provide:
1. A 2-3 sentence summary of what this PR does
2. The main purpose/intent
3. Any notable patterns or concerns

Be concise and direct. No fluff. Format as plain text, not markdown."""

GROUPING_SYSTEM_PROMPT = """\
You are a code review assistant. Group these files by FEATURE or PURPOSE, not by file type \
or directory.

Output ONLY valid JSON in this exact format:
{
  "groups": [
    {
      "name": "Feature Name",
      "emoji": "🔧",
      "description": "Brief description of this group",
      "files": ["file1.py", "file2.py"]
    }
  ]
}

Rules:
- Group files that work together for a single feature
- Use descriptive names like "User Authentication" not "Auth Files"
- Include an appropriate emoji for each group
- Every file must be in exactly one group
- Max 5-7 groups, combine smaller ones"""

QUIZ_SYSTEM_PROMPT = """\
You are a code review quiz master. Generate 3 multiple-choice questions to test if a \
reviewer understood this PR.

Output ONLY valid JSON in this exact format:
{
  "questions": [
    {
      "question": "What is the main purpose of this PR?",
      "options": ["A) Option 1", "B) Option 2", "C) Option 3", "D) Option 4"],
      "correct": "A",
      "explanation": "Brief explanation of why this is correct"
    }
  ]
}

Rules:
- Questions should test understanding, not memorization
- Include questions about: intent, side effects, edge cases
- Make wrong answers plausible but clearly wrong
- Exactly 3 questions, each with exactly 4 options labeled A-D"""

EXPLANATION_SYSTEM_PROMPT = """\
You are a code review assistant. Explain the changes to this file in 3-5 bullet points.
Be specific about WHAT changed and WHY it might have changed.
Focus on the most important changes first.
Format as plain bullet points with • prefix."""


@dataclass(frozen=True, slots=True)
class PromptPair:
    """System instructions plus the task-specific user message."""

    system: str
    user: str

    def render(self) -> str:
        return f"{self.system}{PROMPT_SEPARATOR}{self.user}"


def _summary_user_prompt(context: AnalysisContext, budget: int) -> str:
    return (
        f"PR Title: {context.title}\n\n"
        f"PR Description:\n{context.description or '(no description)'}\n\n"
        f"Author: @{context.author}\n"
        f"Changes: +{context.additions} -{context.deletions} "
        f"across {context.changed_files} files\n"
        f"Branch: {context.head_ref} → {context.base_ref}\n\n"
        f"Diff (first {budget} chars):\n{truncate(context.diff, budget)}"
    )


def _grouping_user_prompt(context: AnalysisContext, budget: int) -> str:
    file_lines = "\n".join(context.files)
    return (
        f"PR Title: {context.title}\n\n"
        f"Files to group:\n{file_lines}\n\n"
        f"Diff context (first {budget} chars):\n{truncate(context.diff, budget)}"
    )


def _quiz_user_prompt(context: AnalysisContext, budget: int) -> str:
    return (
        f"PR Title: {context.title}\n"
        f"Description: {context.description or '(none)'}\n\n"
        f"Feature Groups:\n{context.group_digest}\n\n"
        f"Diff (first {budget} chars):\n{truncate(context.diff, budget)}"
    )


def _explanation_user_prompt(context: AnalysisContext, budget: int) -> str:
    return (
        f"PR: {context.title}\n"
        f"File: {context.file_path}\n\n"
        f"Diff:\n{truncate(context.diff, budget)}"
    )


_TEMPLATES = {
    AnalysisTask.SUMMARIZE: (SUMMARY_SYSTEM_PROMPT, _summary_user_prompt),
    AnalysisTask.GROUP_FILES: (GROUPING_SYSTEM_PROMPT, _grouping_user_prompt),
    AnalysisTask.GENERATE_QUIZ: (QUIZ_SYSTEM_PROMPT, _quiz_user_prompt),
    AnalysisTask.EXPLAIN_FILE: (EXPLANATION_SYSTEM_PROMPT, _explanation_user_prompt),
}


def render_prompt(
    task: AnalysisTask | str,
    context: AnalysisContext,
    budget: PromptBudget | None = None,
) -> PromptPair:
    """Render the deterministic prompt pair for ``task``."""
    try:
        resolved_task = AnalysisTask(task)
    except ValueError as error:
        raise UnknownTaskError(f"Unknown analysis task '{task}'.") from error
    prompt_budget = budget or PromptBudget()
    system_prompt, build_user_prompt = _TEMPLATES[resolved_task]
    return PromptPair(
        system=system_prompt,
        user=build_user_prompt(context, prompt_budget.for_task(resolved_task)),
    )
