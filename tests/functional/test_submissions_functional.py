"""Functional tests for the submission pipeline and its retry state machine."""

from __future__ import annotations

import json
import threading
from datetime import timedelta

import pytest

from fieldwork.logic.document_store import ANSWERS, RESPONSES, DocumentConflict, StoreUnavailable
from fieldwork.logic.errors import (
    AlreadySubmitted,
    MissingRequiredAnswers,
    NotFound,
    NotSubmittable,
    NotVoidable,
    ReasonRequired,
    SubmissionCancelled,
    SubmissionFailed,
)
from fieldwork.logic.events import RESPONSE_SUBMITTED, RESPONSE_VOIDED, get_buffered_events
from fieldwork.logic.retry import RetryPolicy, RetryRunner, RetryState
from fieldwork.models.respondent import RespondentCreate
from fieldwork.models.response import ResponseStatus, SubmissionInput
from fieldwork.models.survey import QuestionCreate, SurveyCreate


@pytest.fixture
def fieldwork(services):
    """A locked survey with one required and one optional question, and an open session."""
    respondent = services.respondents.register(
        RespondentCreate(age_range="45-54", sex="Other", admin_area="cluster 12", consent_given=True, enumerator_id="enum-1")
    )
    session = services.sessions.create(respondent.id, "enum-1")
    survey = services.surveys.create(SurveyCreate(title="Livelihoods", version="2.0"))
    required = services.surveys.add_question(survey.id, QuestionCreate(question_text="Main income", required=True, order=1))
    optional = services.surveys.add_question(survey.id, QuestionCreate(question_text="Notes", order=2))
    services.surveys.update(survey.id, {"status": "locked"})
    return {
        "respondent": respondent,
        "session": session,
        "survey": services.surveys.get(survey.id),
        "required": required,
        "optional": optional,
    }


def _input(fieldwork, session_id=None, answers=None, gps=None) -> SubmissionInput:
    return SubmissionInput(
        session_id=session_id or fieldwork["session"].id,
        survey_id=fieldwork["survey"].id,
        survey_version=fieldwork["survey"].version,
        respondent_id=fieldwork["respondent"].id,
        enumerator_id="enum-1",
        answers=answers
        if answers is not None
        else [
            {"question_id": fieldwork["required"].id, "answer_value": "farming"},
            {"question_id": fieldwork["optional"].id, "answer_value": "seasonal"},
        ],
        gps=gps,
    )


def _required(services, fieldwork):
    return services.surveys.required_question_ids(fieldwork["survey"].id)


def test_submit_writes_response_and_answers(services, fieldwork, clock):
    gps = {"latitude": 0.31, "longitude": 32.58, "accuracy": 5.0, "captured_at": clock.now().isoformat()}
    result = services.submissions.submit(_input(fieldwork, gps=gps), _required(services, fieldwork))
    assert result.attempts == 1
    assert result.status == ResponseStatus.SUBMITTED

    stored = services.submissions.with_answers(result.response_id)
    assert stored.status == ResponseStatus.SUBMITTED
    assert stored.submitted_at == clock.now()
    assert stored.survey_version == "2.0"
    assert json.loads(stored.location) == {
        "latitude": 0.31,
        "longitude": 32.58,
        "accuracy": 5.0,
        "capturedAt": "2024-03-01T08:00:00.000000Z",
    }
    assert sorted(a.answer_value for a in stored.answers) == ["farming", "seasonal"]
    assert services.completion.is_completed(fieldwork["session"].id, fieldwork["survey"].id)
    assert RESPONSE_SUBMITTED in [e["type"] for e in get_buffered_events()]


def test_missing_required_answers_are_rejected_before_writing(services, fieldwork, store):
    answers = [{"question_id": fieldwork["optional"].id, "answer_value": "x"}]
    with pytest.raises(MissingRequiredAnswers) as excinfo:
        services.submissions.submit(_input(fieldwork, answers=answers), _required(services, fieldwork))
    assert excinfo.value.count == 1
    assert excinfo.value.context["question_ids"] == [fieldwork["required"].id]
    assert store.count(RESPONSES) == 0


def test_duplicate_blocked_per_session_but_allowed_in_another(services, fieldwork, clock):
    """Verifies one submitted response per (session, survey) pair."""
    required = _required(services, fieldwork)
    services.submissions.submit(_input(fieldwork), required)
    with pytest.raises(AlreadySubmitted):
        services.submissions.submit(_input(fieldwork), required)

    services.sessions.close(fieldwork["session"].id, "completed")
    clock.advance(minutes=1)
    second = services.sessions.create(fieldwork["respondent"].id, "enum-1")
    result = services.submissions.submit(_input(fieldwork, session_id=second.id), required)
    assert result.status == ResponseStatus.SUBMITTED
    assert services.completion.completed_surveys(second.id) == [fieldwork["survey"].id]


def test_store_index_blocks_duplicate_missed_by_precheck(services, fieldwork, mocker):
    """Verifies a racing duplicate is caught by the unique index, not the lookup."""
    required = _required(services, fieldwork)
    services.submissions.submit(_input(fieldwork), required)
    mocker.patch.object(services.submissions.completion, "is_completed", return_value=False)
    with pytest.raises(AlreadySubmitted):
        services.submissions.submit(_input(fieldwork), required)
    assert services.store.count(RESPONSES, {"status": ResponseStatus.SUBMITTED}) == 1


def test_retry_exhaustion_reports_attempts_and_backs_off(services, fieldwork, store, clock, mocker):
    """Verifies three failing attempts wait 2s then 4s and end in SubmissionFailed."""
    mocker.patch.object(store, "create_batch", side_effect=StoreUnavailable("network down"))
    started = clock.now()
    with pytest.raises(SubmissionFailed) as excinfo:
        services.submissions.submit(_input(fieldwork), _required(services, fieldwork))
    assert excinfo.value.attempts == 3
    assert excinfo.value.context["attempts"] == 3
    assert isinstance(excinfo.value.last_error, StoreUnavailable)
    assert clock.waits == [2.0, 4.0]
    assert clock.now() - started >= timedelta(seconds=6)


def test_transient_failure_then_success(services, fieldwork, store, clock, mocker):
    real_create_batch = store.create_batch
    calls = {"n": 0}

    def flaky(documents):
        calls["n"] += 1
        if calls["n"] == 1:
            raise StoreUnavailable("blip")
        return real_create_batch(documents)

    mocker.patch.object(store, "create_batch", side_effect=flaky)
    result = services.submissions.submit(_input(fieldwork), _required(services, fieldwork))
    assert result.attempts == 2
    assert clock.waits == [2.0]


def test_lost_acknowledgement_does_not_duplicate(services, fieldwork, store, mocker):
    """Verifies a committed attempt whose reply was lost is recognised on retry."""
    real_create_batch = store.create_batch
    calls = {"n": 0}

    def commit_then_fail(documents):
        calls["n"] += 1
        result = real_create_batch(documents)
        if calls["n"] == 1:
            raise StoreUnavailable("connection reset after commit")
        return result

    mocker.patch.object(store, "create_batch", side_effect=commit_then_fail)
    result = services.submissions.submit(_input(fieldwork), _required(services, fieldwork))
    assert result.attempts == 2
    assert store.count(RESPONSES) == 1
    assert store.count(ANSWERS) == 2
    assert store.get(RESPONSES, result.response_id)["status"] == ResponseStatus.SUBMITTED


def test_cancel_during_backoff_stops_retrying(services, fieldwork, store, mocker):
    mock = mocker.patch.object(store, "create_batch", side_effect=StoreUnavailable("down"))
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SubmissionCancelled) as excinfo:
        services.submissions.submit(_input(fieldwork), _required(services, fieldwork), cancel=cancel)
    assert excinfo.value.attempts == 1
    assert mock.call_count == 1


def test_retry_runner_reports_transitions(clock):
    """Verifies the observer sees every state of a run that succeeds on attempt 2."""
    seen = []

    def operation(attempt):
        if attempt == 1:
            raise StoreUnavailable("x")
        return attempt

    runner = RetryRunner(RetryPolicy(max_attempts=3, initial_delay=1.0, multiplier=3.0), clock, observer=seen.append)
    assert runner.run(operation) == 2
    assert [(t.state, t.attempt) for t in seen] == [
        (RetryState.ATTEMPTING, 1),
        (RetryState.WAITING, 1),
        (RetryState.ATTEMPTING, 2),
        (RetryState.SUCCEEDED, 2),
    ]
    assert seen[1].delay == 1.0
    assert RetryPolicy(initial_delay=1.0, multiplier=3.0).delay_for(3) == 9.0


def test_conflicts_are_not_retried(clock):
    calls = []

    def operation(attempt):
        calls.append(attempt)
        raise DocumentConflict(RESPONSES, "dup")

    with pytest.raises(DocumentConflict):
        RetryRunner(RetryPolicy(), clock).run(operation)
    assert calls == [1]
    assert clock.waits == []


def test_drafts_do_not_block_and_can_be_promoted(services, fieldwork):
    required = _required(services, fieldwork)
    draft = services.submissions.save_draft(_input(fieldwork, answers=[]))
    assert draft.status == ResponseStatus.DRAFT
    assert services.submissions.get(draft.response_id).submitted_at is None
    assert not services.completion.is_completed(fieldwork["session"].id, fieldwork["survey"].id)

    with pytest.raises(MissingRequiredAnswers):
        services.submissions.submit_draft(draft.response_id, required)

    second = services.submissions.save_draft(_input(fieldwork))
    promoted = services.submissions.submit_draft(second.response_id, required)
    assert promoted.status == ResponseStatus.SUBMITTED
    with pytest.raises(NotSubmittable):
        services.submissions.submit_draft(second.response_id, required)

    third = services.submissions.save_draft(_input(fieldwork))
    with pytest.raises(AlreadySubmitted):
        services.submissions.submit_draft(third.response_id, required)


def test_void_rules_and_terminality(services, fieldwork):
    """Verifies only submitted responses can be voided, with a reason, exactly once."""
    required = _required(services, fieldwork)
    draft = services.submissions.save_draft(_input(fieldwork))
    with pytest.raises(NotVoidable):
        services.submissions.void_response(draft.response_id, "supervisor-1", "bad data")

    submitted = services.submissions.submit(_input(fieldwork), required)
    with pytest.raises(ReasonRequired):
        services.submissions.void_response(submitted.response_id, "supervisor-1", "   ")

    voided = services.submissions.void_response(submitted.response_id, "supervisor-1", "duplicate interview")
    assert voided.status == ResponseStatus.VOIDED
    assert voided.voided_by == "supervisor-1"
    assert voided.void_reason == "duplicate interview"
    assert RESPONSE_VOIDED in [e["type"] for e in get_buffered_events()]

    with pytest.raises(NotVoidable) as excinfo:
        services.submissions.void_response(submitted.response_id, "supervisor-2", "again")
    assert excinfo.value.context["current_status"] == ResponseStatus.VOIDED


def test_review_listing_and_stats(services, fieldwork):
    required = _required(services, fieldwork)
    services.submissions.save_draft(_input(fieldwork))
    submitted = services.submissions.submit(_input(fieldwork), required)

    assert services.submissions.list(survey_id=fieldwork["survey"].id)["total"] == 2
    assert services.submissions.list(status=ResponseStatus.SUBMITTED)["total"] == 1
    by_enumerator = services.submissions.list(enumerator_id="enum-1", status=ResponseStatus.SUBMITTED)
    assert [r.id for r in by_enumerator["responses"]] == [submitted.response_id]
    assert services.submissions.list(enumerator_id="enum-9")["total"] == 0
    assert len(services.submissions.for_session(fieldwork["session"].id)) == 2

    stats = services.surveys.stats(fieldwork["survey"].id)
    assert (stats.total_responses, stats.submitted_responses, stats.draft_responses, stats.voided_responses) == (2, 1, 1, 0)
    with pytest.raises(NotFound):
        services.submissions.get("missing")
