"""Review session data and the pure navigation state machine."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import StrEnum

from pr_scout.errors import InvalidTransitionError
from pr_scout.models import ChangeSetDetails, ChangeSetIdentifier, ReviewDecision
from pr_scout.schema import FileGroup, QuizQuestion, QuizResult


class ReviewStage(StrEnum):
    """Stages of one review walkthrough."""

    IDLE = "idle"
    FETCHING = "fetching"
    SUMMARIZING = "summarizing"
    GROUPING = "grouping"
    WALKING = "walking"
    QUIZ_PENDING = "quiz_pending"
    QUIZ_IN_PROGRESS = "quiz_in_progress"
    RESULT = "result"
    SUBMITTING = "submitting"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    ERROR = "error"


TERMINAL_STAGES = frozenset({ReviewStage.APPROVED, ReviewStage.CHANGES_REQUESTED})


class EventKind(StrEnum):
    """Inputs that drive the state machine."""

    START_FETCH = "start_fetch"
    FETCHED = "fetched"
    SUMMARIZED = "summarized"
    BEGIN_WALK = "begin_walk"
    OPEN_GROUP = "open_group"
    NEXT_FILE = "next_file"
    PREVIOUS_FILE = "previous_file"
    SHOW_GROUPS = "show_groups"
    SKIP_TO_QUIZ = "skip_to_quiz"
    QUIZ_READY = "quiz_ready"
    ANSWERED = "answered"
    RETRY = "retry"
    APPROVE = "approve"
    REQUEST_CHANGES = "request_changes"
    SUBMITTED = "submitted"
    FAIL = "fail"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class ReviewEvent:
    """One state machine input; ``group_index`` is used by ``OPEN_GROUP``."""

    kind: EventKind
    group_index: int | None = None


@dataclass(frozen=True, slots=True)
class ReviewState:
    """Current stage plus the cursors that are meaningful for it."""

    stage: ReviewStage = ReviewStage.IDLE
    group_index: int = 0
    file_index: int = 0
    question_index: int = 0
    decision: ReviewDecision | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES


@dataclass(frozen=True, slots=True)
class TransitionContext:
    """Session facts the transition function needs, without the session."""

    group_sizes: tuple[int, ...] = ()
    question_count: int = 0
    passed: bool = False


INITIAL_STATE = ReviewState()


def _first_file_from(group_sizes: tuple[int, ...], start_group: int) -> tuple[int, int] | None:
    """Return the first (group, file) at or after ``start_group``, skipping empties."""
    for group_index in range(start_group, len(group_sizes)):
        if group_sizes[group_index] > 0:
            return group_index, 0
    return None


def _last_file_before(group_sizes: tuple[int, ...], end_group: int) -> tuple[int, int] | None:
    for group_index in range(end_group - 1, -1, -1):
        if group_sizes[group_index] > 0:
            return group_index, group_sizes[group_index] - 1
    return None


def _walk_from(context: TransitionContext, start_group: int) -> ReviewState:
    position = _first_file_from(context.group_sizes, start_group)
    if position is None:
        return ReviewState(stage=ReviewStage.QUIZ_PENDING)
    return ReviewState(
        stage=ReviewStage.WALKING,
        group_index=position[0],
        file_index=position[1],
    )


def _reject(state: ReviewState, event: ReviewEvent) -> InvalidTransitionError:
    return InvalidTransitionError(
        f"Event '{event.kind}' is not allowed in stage '{state.stage}'."
    )


def transition(
    state: ReviewState,
    event: ReviewEvent,
    context: TransitionContext | None = None,
) -> ReviewState:
    """Return the state that follows ``state`` on ``event``.

    The function is pure: it never touches session data, only the facts
    carried in ``context``. Events that the current stage does not accept
    raise ``InvalidTransitionError``.
    """
    ctx = context or TransitionContext()
    stage = state.stage
    kind = event.kind

    if kind is EventKind.RESET:
        return INITIAL_STATE
    if kind is EventKind.FAIL:
        if state.is_terminal or stage is ReviewStage.ERROR:
            raise _reject(state, event)
        return ReviewState(stage=ReviewStage.ERROR)

    if stage is ReviewStage.IDLE and kind is EventKind.START_FETCH:
        return ReviewState(stage=ReviewStage.FETCHING)
    if stage is ReviewStage.FETCHING and kind is EventKind.FETCHED:
        return ReviewState(stage=ReviewStage.SUMMARIZING)
    if stage is ReviewStage.SUMMARIZING and kind is EventKind.SUMMARIZED:
        return ReviewState(stage=ReviewStage.GROUPING)

    if stage is ReviewStage.GROUPING:
        if kind is EventKind.BEGIN_WALK:
            return _walk_from(ctx, 0)
        if kind is EventKind.SKIP_TO_QUIZ:
            return ReviewState(stage=ReviewStage.QUIZ_PENDING)

    if stage in (ReviewStage.GROUPING, ReviewStage.WALKING) and kind is EventKind.OPEN_GROUP:
        index = event.group_index
        if index is None or not 0 <= index < len(ctx.group_sizes) or ctx.group_sizes[index] == 0:
            raise InvalidTransitionError(f"Group index {index} does not name a non-empty group.")
        return ReviewState(stage=ReviewStage.WALKING, group_index=index, file_index=0)

    if stage is ReviewStage.WALKING:
        if kind is EventKind.NEXT_FILE:
            sizes = ctx.group_sizes
            size = sizes[state.group_index] if state.group_index < len(sizes) else 0
            if state.file_index + 1 < size:
                return replace(state, file_index=state.file_index + 1)
            return _walk_from(ctx, state.group_index + 1)
        if kind is EventKind.PREVIOUS_FILE:
            if state.file_index > 0:
                return replace(state, file_index=state.file_index - 1)
            position = _last_file_before(ctx.group_sizes, state.group_index)
            if position is None:
                return state
            return replace(state, group_index=position[0], file_index=position[1])
        if kind is EventKind.SHOW_GROUPS:
            return ReviewState(stage=ReviewStage.GROUPING)

    if stage is ReviewStage.QUIZ_PENDING and kind is EventKind.QUIZ_READY:
        if ctx.question_count < 1:
            raise InvalidTransitionError("Cannot start a quiz without questions.")
        return ReviewState(stage=ReviewStage.QUIZ_IN_PROGRESS, question_index=0)

    if stage is ReviewStage.QUIZ_IN_PROGRESS and kind is EventKind.ANSWERED:
        next_index = state.question_index + 1
        if next_index >= ctx.question_count:
            return ReviewState(stage=ReviewStage.RESULT)
        return replace(state, question_index=next_index)

    if stage is ReviewStage.RESULT:
        if kind is EventKind.RETRY and not ctx.passed:
            return _walk_from(ctx, 0)
        if kind is EventKind.APPROVE and ctx.passed:
            return ReviewState(stage=ReviewStage.SUBMITTING, decision=ReviewDecision.APPROVE)
        if kind is EventKind.REQUEST_CHANGES and ctx.passed:
            return ReviewState(
                stage=ReviewStage.SUBMITTING, decision=ReviewDecision.REQUEST_CHANGES
            )

    if stage is ReviewStage.SUBMITTING and kind is EventKind.SUBMITTED:
        if state.decision is ReviewDecision.APPROVE:
            return ReviewState(stage=ReviewStage.APPROVED, decision=state.decision)
        return ReviewState(stage=ReviewStage.CHANGES_REQUESTED, decision=state.decision)

    raise _reject(state, event)


@dataclass(slots=True)
class ReviewSession:
    """Aggregate root for everything known about the PR under review."""

    identifier: ChangeSetIdentifier | None = None
    details: ChangeSetDetails | None = None
    diff: str = ""
    files: list[str] = field(default_factory=list)
    summary: str | None = None
    groups: list[FileGroup] = field(default_factory=list)
    explanations: dict[str, str] = field(default_factory=dict)
    quiz: list[QuizQuestion] = field(default_factory=list)
    answers: list[str] = field(default_factory=list)
    quiz_result: QuizResult | None = None

    @property
    def loaded(self) -> bool:
        return self.identifier is not None and self.details is not None

    def transition_context(self) -> TransitionContext:
        return TransitionContext(
            group_sizes=tuple(len(group.files) for group in self.groups),
            question_count=len(self.quiz),
            passed=self.quiz_result is not None and self.quiz_result.passed,
        )

    def file_at(self, group_index: int, file_index: int) -> str:
        return self.groups[group_index].files[file_index]

    def clear_quiz(self) -> None:
        self.quiz = []
        self.answers = []
        self.quiz_result = None

    def reset(self) -> None:
        """Return every field to its empty value."""
        self.identifier = None
        self.details = None
        self.diff = ""
        self.files = []
        self.summary = None
        self.groups = []
        self.explanations = {}
        self.clear_quiz()
