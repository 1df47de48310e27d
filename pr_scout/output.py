"""Plain-text rendering for the terminal walkthrough."""

from __future__ import annotations

from collections.abc import Sequence

from pr_scout.models import (
    AnswerFeedback,
    ChangeSetDetails,
    ChangeSetIdentifier,
    ReviewDecision,
    SubmissionReceipt,
)
from pr_scout.schema import FileGroup, QuizQuestion, QuizResult

DESCRIPTION_PREVIEW_CHARS = 500
RULE = "-" * 60


def render_summary_card(identifier: ChangeSetIdentifier, details: ChangeSetDetails) -> str:
    """Render PR metadata as a short header card."""
    lines = [
        RULE,
        f"{identifier}  {details.title}",
        f"by @{details.author_login}  ({details.state})",
        f"{details.head_ref} -> {details.base_ref}",
        (
            f"+{details.additions} -{details.deletions}  "
            f"{details.changed_files} file(s)  {details.commit_count} commit(s)"
        ),
    ]
    if details.html_url:
        lines.append(details.html_url)
    description = details.body.strip()
    if description:
        if len(description) > DESCRIPTION_PREVIEW_CHARS:
            description = description[:DESCRIPTION_PREVIEW_CHARS].rstrip() + "..."
        lines.extend(["", description])
    lines.append(RULE)
    return "\n".join(lines)


def render_summary(summary: str) -> str:
    return "\n".join(["## AI Summary", summary.strip() or "No summary provided."])


def render_groups(groups: Sequence[FileGroup]) -> str:
    """Render the numbered group overview."""
    if not groups:
        return "No changed files."
    lines = ["## Feature Groups"]
    for position, group in enumerate(groups, start=1):
        count = len(group.files)
        noun = "file" if count == 1 else "files"
        lines.append(f"{position}. {group.emoji} {group.name} ({count} {noun})")
        if group.description:
            lines.append(f"   {group.description}")
        for path in group.files:
            lines.append(f"   - {path}")
    return "\n".join(lines)


def render_file_view(
    groups: Sequence[FileGroup],
    *,
    group_index: int,
    file_index: int,
    explanation: str,
) -> str:
    """Render one file of the walkthrough with its explanation."""
    group = groups[group_index]
    path = group.files[file_index]
    lines = [
        RULE,
        f"{group.emoji} {group.name}  (group {group_index + 1}/{len(groups)}, "
        f"file {file_index + 1}/{len(group.files)})",
        path,
        RULE,
        explanation.strip(),
    ]
    return "\n".join(lines)


def render_question(question: QuizQuestion, *, index: int, total: int) -> str:
    lines = [f"Question {index + 1}/{total}: {question.question}"]
    lines.extend(f"  {option}" for option in question.options)
    return "\n".join(lines)


def render_feedback(feedback: AnswerFeedback) -> str:
    if feedback.is_correct:
        headline = "Correct!"
    else:
        headline = f"Incorrect. The correct answer was {feedback.correct_label}."
    if feedback.explanation:
        return f"{headline} {feedback.explanation}"
    return headline


def render_result(result: QuizResult) -> str:
    """Render the quiz outcome."""
    verdict = "PASSED" if result.passed else "NOT PASSED"
    lines = [f"Quiz {verdict}: {result.correct}/{result.total} correct ({result.percent}%)."]
    if result.passed:
        lines.append("You can now approve or request changes.")
    else:
        lines.append("Review the changes again before submitting a decision.")
    return "\n".join(lines)


def render_receipt(receipt: SubmissionReceipt) -> str:
    if receipt.decision is ReviewDecision.APPROVE:
        return f"Approved {receipt.identifier}."
    return f"Requested changes on {receipt.identifier}: {receipt.comment}"
