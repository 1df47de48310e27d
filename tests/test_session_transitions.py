"""Tests for the pure review state machine."""

from __future__ import annotations

import pytest
from pr_scout.errors import InvalidTransitionError, SessionStateError
from pr_scout.models import ReviewDecision
from pr_scout.session import (
    INITIAL_STATE,
    EventKind,
    ReviewEvent,
    ReviewSession,
    ReviewStage,
    ReviewState,
    TransitionContext,
    transition,
)

TWO_GROUPS = TransitionContext(group_sizes=(2, 1), question_count=3)


def _event(kind: EventKind, group_index: int | None = None) -> ReviewEvent:
    return ReviewEvent(kind=kind, group_index=group_index)


def _walking(group_index: int, file_index: int) -> ReviewState:
    return ReviewState(stage=ReviewStage.WALKING, group_index=group_index, file_index=file_index)


@pytest.mark.unit
def test_fetch_and_enrichment_sequence() -> None:
    state = INITIAL_STATE
    for kind, expected in [
        (EventKind.START_FETCH, ReviewStage.FETCHING),
        (EventKind.FETCHED, ReviewStage.SUMMARIZING),
        (EventKind.SUMMARIZED, ReviewStage.GROUPING),
    ]:
        state = transition(state, _event(kind))
        assert state.stage is expected


@pytest.mark.unit
def test_walk_visits_every_file_then_cascades_to_quiz() -> None:
    grouping = ReviewState(stage=ReviewStage.GROUPING)
    state = transition(grouping, _event(EventKind.BEGIN_WALK), TWO_GROUPS)
    visited = []
    while state.stage is ReviewStage.WALKING:
        visited.append((state.group_index, state.file_index))
        state = transition(state, _event(EventKind.NEXT_FILE), TWO_GROUPS)

    assert visited == [(0, 0), (0, 1), (1, 0)]
    assert state.stage is ReviewStage.QUIZ_PENDING


@pytest.mark.unit
def test_walk_skips_empty_groups() -> None:
    context = TransitionContext(group_sizes=(0, 1, 0, 2))
    grouping = ReviewState(stage=ReviewStage.GROUPING)
    state = transition(grouping, _event(EventKind.BEGIN_WALK), context)
    assert (state.group_index, state.file_index) == (1, 0)

    state = transition(state, _event(EventKind.NEXT_FILE), context)
    assert (state.group_index, state.file_index) == (3, 0)

    state = transition(state, _event(EventKind.PREVIOUS_FILE), context)
    assert (state.group_index, state.file_index) == (1, 0)


@pytest.mark.unit
def test_begin_walk_without_groups_goes_straight_to_quiz() -> None:
    state = transition(ReviewState(stage=ReviewStage.GROUPING), _event(EventKind.BEGIN_WALK))

    assert state.stage is ReviewStage.QUIZ_PENDING


@pytest.mark.unit
def test_previous_file_crosses_groups_and_stays_at_origin() -> None:
    state = transition(_walking(1, 0), _event(EventKind.PREVIOUS_FILE), TWO_GROUPS)
    assert state == _walking(0, 1)

    state = transition(_walking(0, 0), _event(EventKind.PREVIOUS_FILE), TWO_GROUPS)
    assert state == _walking(0, 0)


@pytest.mark.unit
def test_open_group_jumps_to_its_first_file() -> None:
    grouping = ReviewState(stage=ReviewStage.GROUPING)

    assert transition(grouping, _event(EventKind.OPEN_GROUP, 1), TWO_GROUPS) == _walking(1, 0)
    assert transition(_walking(0, 1), _event(EventKind.OPEN_GROUP, 1), TWO_GROUPS) == _walking(
        1, 0
    )


@pytest.mark.unit
@pytest.mark.parametrize("group_index", [None, -1, 2])
def test_open_group_rejects_bad_indexes(group_index: int | None) -> None:
    with pytest.raises(InvalidTransitionError):
        transition(
            ReviewState(stage=ReviewStage.GROUPING),
            _event(EventKind.OPEN_GROUP, group_index),
            TWO_GROUPS,
        )


@pytest.mark.unit
def test_show_groups_and_skip_to_quiz() -> None:
    state = transition(_walking(0, 1), _event(EventKind.SHOW_GROUPS), TWO_GROUPS)
    assert state.stage is ReviewStage.GROUPING

    state = transition(state, _event(EventKind.SKIP_TO_QUIZ), TWO_GROUPS)
    assert state.stage is ReviewStage.QUIZ_PENDING


@pytest.mark.unit
def test_quiz_requires_questions() -> None:
    with pytest.raises(InvalidTransitionError):
        transition(ReviewState(stage=ReviewStage.QUIZ_PENDING), _event(EventKind.QUIZ_READY))


@pytest.mark.unit
def test_answers_advance_until_result() -> None:
    state = transition(
        ReviewState(stage=ReviewStage.QUIZ_PENDING), _event(EventKind.QUIZ_READY), TWO_GROUPS
    )
    indexes = []
    while state.stage is ReviewStage.QUIZ_IN_PROGRESS:
        indexes.append(state.question_index)
        state = transition(state, _event(EventKind.ANSWERED), TWO_GROUPS)

    assert indexes == [0, 1, 2]
    assert state.stage is ReviewStage.RESULT


@pytest.mark.unit
def test_submission_requires_a_pass() -> None:
    result = ReviewState(stage=ReviewStage.RESULT)
    failed = TransitionContext(group_sizes=(1,), question_count=3, passed=False)

    with pytest.raises(InvalidTransitionError):
        transition(result, _event(EventKind.APPROVE), failed)
    with pytest.raises(InvalidTransitionError):
        transition(result, _event(EventKind.REQUEST_CHANGES), failed)

    assert transition(result, _event(EventKind.RETRY), failed) == _walking(0, 0)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("kind", "decision", "final_stage"),
    [
        (EventKind.APPROVE, ReviewDecision.APPROVE, ReviewStage.APPROVED),
        (EventKind.REQUEST_CHANGES, ReviewDecision.REQUEST_CHANGES, ReviewStage.CHANGES_REQUESTED),
    ],
)
def test_passed_result_submits_decision(
    kind: EventKind, decision: ReviewDecision, final_stage: ReviewStage
) -> None:
    passed = TransitionContext(question_count=3, passed=True)

    state = transition(ReviewState(stage=ReviewStage.RESULT), _event(kind), passed)
    assert state.stage is ReviewStage.SUBMITTING
    assert state.decision is decision

    state = transition(state, _event(EventKind.SUBMITTED), passed)
    assert state.stage is final_stage
    assert state.is_terminal

    with pytest.raises(InvalidTransitionError):
        transition(ReviewState(stage=ReviewStage.RESULT), _event(EventKind.RETRY), passed)


@pytest.mark.unit
@pytest.mark.parametrize("stage", list(ReviewStage))
def test_reset_is_accepted_from_every_stage(stage: ReviewStage) -> None:
    assert transition(ReviewState(stage=stage), _event(EventKind.RESET)) == INITIAL_STATE


@pytest.mark.unit
def test_fail_moves_non_terminal_stages_to_error() -> None:
    state = transition(ReviewState(stage=ReviewStage.FETCHING), _event(EventKind.FAIL))
    assert state.stage is ReviewStage.ERROR

    for stage in (ReviewStage.ERROR, ReviewStage.APPROVED, ReviewStage.CHANGES_REQUESTED):
        with pytest.raises(InvalidTransitionError):
            transition(ReviewState(stage=stage), _event(EventKind.FAIL))


@pytest.mark.unit
def test_error_stage_only_accepts_reset() -> None:
    error = ReviewState(stage=ReviewStage.ERROR)
    for kind in EventKind:
        if kind is EventKind.RESET:
            continue
        with pytest.raises(InvalidTransitionError):
            transition(error, _event(kind), TWO_GROUPS)


@pytest.mark.unit
def test_invalid_transition_is_a_session_state_error() -> None:
    with pytest.raises(SessionStateError):
        transition(INITIAL_STATE, _event(EventKind.NEXT_FILE))


@pytest.mark.unit
def test_session_reset_clears_every_field() -> None:
    session = ReviewSession(diff="diff", files=["a.py"], summary="s", explanations={"a.py": "x"})
    session.answers.append("A")

    session.reset()

    assert session == ReviewSession()
