"""Review orchestrator: owns the session and drives it through the state machine."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from pr_scout.context import AnalysisContext
from pr_scout.errors import (
    EmptyCommentError,
    ReviewError,
    SessionBusyError,
    SessionStateError,
)
from pr_scout.explanations import ExplanationCache
from pr_scout.gateway import AnalysisGateway
from pr_scout.grouping import GroupingEngine, enforce_partition, unique_paths
from pr_scout.models import (
    AnswerFeedback,
    ChangeSetDetails,
    ChangeSetIdentifier,
    FetchResult,
    ReviewDecision,
    SubmissionReceipt,
)
from pr_scout.observability import GatewayTelemetry
from pr_scout.quiz import QuizEngine, score_answers
from pr_scout.resolver import resolve_reference
from pr_scout.schema import AnalysisTask, FileGroup, QuizQuestion
from pr_scout.session import (
    INITIAL_STATE,
    EventKind,
    ReviewEvent,
    ReviewSession,
    ReviewStage,
    ReviewState,
    transition,
)
from pr_scout.source_control import SourceControlAdapter

logger = logging.getLogger(__name__)


class ReviewOrchestrator:
    """Run one review at a time against a source-control adapter and a gateway.

    Collaborator calls are serialized with a non-blocking lock: a second call
    while one is outstanding raises ``SessionBusyError``. ``reset`` does not
    take the lock, so a late collaborator result lands in the session that
    was current when the call started.
    """

    def __init__(self, source_control: SourceControlAdapter, gateway: AnalysisGateway) -> None:
        self._source_control = source_control
        self._gateway = gateway
        self._grouping = GroupingEngine(gateway)
        self._quiz = QuizEngine(gateway)
        self._session = ReviewSession()
        self._state = INITIAL_STATE
        self._busy = threading.Lock()

    @property
    def state(self) -> ReviewState:
        return self._state

    @property
    def session(self) -> ReviewSession:
        return self._session

    @property
    def telemetry(self) -> GatewayTelemetry:
        return self._gateway.telemetry

    @contextmanager
    def _exclusive(self) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise SessionBusyError("Another operation is already running for this session.")
        try:
            yield
        finally:
            self._busy.release()

    def _apply(self, kind: EventKind, *, group_index: int | None = None) -> ReviewState:
        event = ReviewEvent(kind=kind, group_index=group_index)
        previous = self._state
        self._state = transition(previous, event, self._session.transition_context())
        if self._state.stage is not previous.stage:
            logger.info("Review stage %s -> %s on %s", previous.stage, self._state.stage, kind)
        return self._state

    def _fail(self) -> None:
        if self._state.is_terminal or self._state.stage is ReviewStage.ERROR:
            return
        self._apply(EventKind.FAIL)

    def _require_stage(self, *stages: ReviewStage) -> None:
        if self._state.stage not in stages:
            expected = ", ".join(str(stage) for stage in stages)
            raise SessionStateError(
                f"Operation requires stage {expected}; current stage is '{self._state.stage}'."
            )

    def _require_loaded(self) -> ReviewSession:
        if not self._session.loaded:
            raise SessionStateError("No pull request is loaded. Fetch one first.")
        return self._session

    def _require_details(self, session: ReviewSession) -> ChangeSetDetails:
        if session.details is None:
            raise SessionStateError("Pull request details are missing from the session.")
        return session.details

    def _ensure_current(self, session: ReviewSession) -> None:
        if session is not self._session:
            raise SessionStateError("The session was reset while the operation was running.")

    def reset(self) -> None:
        """Discard the session and return to idle from any stage."""
        self._session = ReviewSession()
        self._apply(EventKind.RESET)

    def check_authentication(self) -> str:
        with self._exclusive():
            return self._source_control.check_auth()

    def resolve_and_fetch(self, reference: str) -> FetchResult:
        """Resolve ``reference`` and load a fresh session from source control."""
        self.reset()
        session = self._session
        with self._exclusive():
            try:
                identifier = resolve_reference(
                    reference,
                    ambient_repository=self._source_control.ambient_repository,
                )
            except ReviewError:
                self._fail()
                raise

            self._apply(EventKind.START_FETCH)
            try:
                details, diff, files = self._fetch(identifier)
            except ReviewError:
                if session is self._session:
                    self._fail()
                raise

        self._ensure_current(session)
        session.identifier = identifier
        session.details = details
        session.diff = diff
        session.files = files
        self._apply(EventKind.FETCHED)
        return FetchResult(
            identifier=identifier,
            details=details,
            diff=diff,
            files=tuple(files),
        )

    def _fetch(self, identifier: ChangeSetIdentifier) -> tuple[ChangeSetDetails, str, list[str]]:
        owner, repo, number = identifier.owner, identifier.repo, identifier.number
        details = self._source_control.fetch_details(owner, repo, number)
        diff = self._source_control.fetch_diff(owner, repo, number)
        files = unique_paths(self._source_control.fetch_files(owner, repo, number))
        return details, diff, files

    def summarize(self) -> str:
        """Return the AI summary, generating it once per session."""
        session = self._require_loaded()
        if session.summary is not None:
            return session.summary
        self._require_stage(ReviewStage.SUMMARIZING)
        context = AnalysisContext.from_details(
            self._require_details(session),
            diff=session.diff,
            files=tuple(session.files),
        )
        with self._exclusive():
            summary = str(self._gateway.analyze(AnalysisTask.SUMMARIZE, context))
        self._ensure_current(session)
        session.summary = summary
        self._apply(EventKind.SUMMARIZED)
        return summary

    def group_files(self, files: Sequence[str] | None = None) -> list[FileGroup]:
        """Group the session's files into features.

        When ``files`` is given, only its paths that belong to the session are
        sent for grouping; the remaining session files land in the catch-all
        group, so the result always covers every session file exactly once.
        """
        session = self._require_loaded()
        self._require_stage(ReviewStage.GROUPING)
        details = self._require_details(session)
        known = set(session.files)
        file_list = (
            list(session.files)
            if files is None
            else [path for path in unique_paths(files) if path in known]
        )
        with self._exclusive():
            groups = self._grouping.group(details, file_list, session.diff)
        self._ensure_current(session)
        groups = enforce_partition(groups, session.files)
        session.groups = groups
        return list(groups)

    def explain_file(self, path: str) -> str:
        """Explain one changed file; never moves the navigation cursor."""
        session = self._require_loaded()
        if path not in session.files:
            raise SessionStateError(f"File '{path}' is not part of this pull request.")
        details = self._require_details(session)
        cache = ExplanationCache(self._gateway, session.explanations)
        if path in cache:
            return cache.get(path) or ""
        with self._exclusive():
            return cache.explain(path, title=details.title, diff=session.diff)

    def begin_walk(self) -> ReviewState:
        return self._apply(EventKind.BEGIN_WALK)

    def open_group(self, group_index: int) -> ReviewState:
        return self._apply(EventKind.OPEN_GROUP, group_index=group_index)

    def next_file(self) -> ReviewState:
        return self._apply(EventKind.NEXT_FILE)

    def previous_file(self) -> ReviewState:
        return self._apply(EventKind.PREVIOUS_FILE)

    def show_groups(self) -> ReviewState:
        return self._apply(EventKind.SHOW_GROUPS)

    def skip_to_quiz(self) -> ReviewState:
        return self._apply(EventKind.SKIP_TO_QUIZ)

    def current_file(self) -> str | None:
        """Return the file under the cursor while walking."""
        if self._state.stage is not ReviewStage.WALKING:
            return None
        return self._session.file_at(self._state.group_index, self._state.file_index)

    def current_question(self) -> QuizQuestion | None:
        if self._state.stage is not ReviewStage.QUIZ_IN_PROGRESS:
            return None
        return self._session.quiz[self._state.question_index]

    def generate_quiz(self) -> list[QuizQuestion]:
        """Generate the quiz and start it."""
        session = self._require_loaded()
        self._require_stage(ReviewStage.QUIZ_PENDING)
        details = self._require_details(session)
        with self._exclusive():
            questions = self._quiz.generate(details, session.diff, session.groups)
        self._ensure_current(session)
        session.clear_quiz()
        session.quiz = questions
        self._apply(EventKind.QUIZ_READY)
        return list(questions)

    def answer(self, label: str) -> AnswerFeedback:
        """Record the answer to the current question and advance."""
        self._require_stage(ReviewStage.QUIZ_IN_PROGRESS)
        session = self._session
        index = self._state.question_index
        question = session.quiz[index]
        chosen = label.strip().upper()
        if chosen not in question.labels:
            raise SessionStateError(
                f"Answer '{label}' is not one of {', '.join(question.labels)}."
            )

        session.answers.append(chosen)
        finished = index + 1 >= len(session.quiz)
        if finished:
            session.quiz_result = score_answers(session.quiz, session.answers)
        self._apply(EventKind.ANSWERED)
        return AnswerFeedback(
            question_index=index,
            chosen=chosen,
            correct_label=question.correct,
            is_correct=chosen == question.correct,
            explanation=question.explanation,
            quiz_finished=finished,
        )

    def retry(self) -> ReviewState:
        """Go back to the walkthrough after a failed quiz."""
        self._apply(EventKind.RETRY)
        self._session.clear_quiz()
        return self._state

    def approve(self) -> SubmissionReceipt:
        return self._submit(ReviewDecision.APPROVE, comment="")

    def request_changes(self, comment: str) -> SubmissionReceipt:
        if not comment or not comment.strip():
            raise EmptyCommentError("A comment is required when requesting changes.")
        return self._submit(ReviewDecision.REQUEST_CHANGES, comment=comment.strip())

    def _submit(self, decision: ReviewDecision, *, comment: str) -> SubmissionReceipt:
        session = self._require_loaded()
        identifier = session.identifier
        if identifier is None:
            raise SessionStateError("No pull request is loaded. Fetch one first.")
        kind = (
            EventKind.APPROVE if decision is ReviewDecision.APPROVE else EventKind.REQUEST_CHANGES
        )
        with self._exclusive():
            self._apply(kind)
            owner, repo, number = identifier.owner, identifier.repo, identifier.number
            try:
                if decision is ReviewDecision.APPROVE:
                    self._source_control.approve(owner, repo, number)
                else:
                    self._source_control.request_changes(owner, repo, number, comment)
            except ReviewError:
                self._fail()
                raise

        self._apply(EventKind.SUBMITTED)
        self._session = ReviewSession()
        return SubmissionReceipt(identifier=identifier, decision=decision, comment=comment)
