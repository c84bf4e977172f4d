"""Session timeout steps.

Drive the in-process API set up in environment.py; time only moves when a
step advances `context.clock`.
"""

from __future__ import annotations

from datetime import datetime

from behave import given, then, when

from fieldwork.logic.document_store import RESPONDENTS


def _api(context, path: str) -> str:
    return f"{context.api_prefix}{path}"


def _session_view(context, alias: str) -> dict:
    session_id = context.vars[alias]
    resp = context.client.get(_api(context, f"/sessions/{session_id}"))
    assert resp.status_code == 200, resp.text
    return resp.json()


@given('respondent "{pseudonym}" is registered by enumerator "{enumerator_id}"')
def step_register_respondent(context, pseudonym: str, enumerator_id: str):
    number = int(pseudonym.split("-")[1])
    if number > 1:
        # Seed the sequence so the next allocation lands on the requested code
        context.store.create(
            RESPONDENTS,
            {
                "pseudonym": f"R-{number - 1:05d}",
                "age_range": "25-34",
                "sex": "F",
                "admin_area": "seed area",
                "consent_given": True,
                "enumerator_id": "seed",
                "created_at": "2024-01-01T00:00:00.000000Z",
            },
        )
    resp = context.client.post(
        _api(context, "/respondents"),
        json={
            "age_range": "35-44",
            "sex": "M",
            "admin_area": "parish 2",
            "consent_given": True,
            "enumerator_id": enumerator_id,
        },
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["pseudonym"] == pseudonym
    context.vars[pseudonym] = body["id"]


@given('enumerator "{enumerator_id}" opens a session for "{pseudonym}" as "{alias}"')
def step_open_session(context, enumerator_id: str, pseudonym: str, alias: str):
    resp = context.client.post(
        _api(context, "/sessions"),
        json={"respondent_id": context.vars[pseudonym], "enumerator_id": enumerator_id},
    )
    assert resp.status_code == 201, resp.text
    context.vars[alias] = resp.json()["session"]["id"]


@when("{minutes:d} minutes pass without activity")
@when("{minutes:d} more minutes pass without activity")
def step_advance(context, minutes: int):
    context.clock.advance(minutes)


@when('the enumerator interacts with session "{alias}"')
def step_touch(context, alias: str):
    resp = context.client.post(_api(context, f"/sessions/{context.vars[alias]}/touch"))
    assert resp.status_code == 200, resp.text


@when('session "{alias}" is closed with reason "{reason}"')
def step_close(context, alias: str, reason: str):
    context.last_response = context.client.post(
        _api(context, f"/sessions/{context.vars[alias]}/close"), json={"reason": reason}
    )


@then('session "{alias}" is not near its timeout')
def step_not_near(context, alias: str):
    assert _session_view(context, alias)["activity"]["is_near_timeout"] is False


@then('session "{alias}" is near its timeout')
def step_near(context, alias: str):
    assert _session_view(context, alias)["activity"]["is_near_timeout"] is True


@then('session "{alias}" has about {minutes:d} minutes remaining')
def step_remaining(context, alias: str, minutes: int):
    remaining = _session_view(context, alias)["activity"]["time_remaining_seconds"]
    assert abs(remaining - minutes * 60) < 1, remaining


@then('session "{alias}" has status "{status}"')
def step_status(context, alias: str, status: str):
    assert _session_view(context, alias)["session"]["status"] == status


@then('session "{alias}" ended {minutes:d} minutes after it started')
def step_duration(context, alias: str, minutes: int):
    session = _session_view(context, alias)["session"]
    started = datetime.fromisoformat(session["start_time"].replace("Z", "+00:00"))
    ended = datetime.fromisoformat(session["end_time"].replace("Z", "+00:00"))
    assert (ended - started).total_seconds() == minutes * 60


@then('enumerator "{enumerator_id}" can open a new session for "{pseudonym}"')
def step_can_open(context, enumerator_id: str, pseudonym: str):
    resp = context.client.post(
        _api(context, "/sessions"),
        json={"respondent_id": context.vars[pseudonym], "enumerator_id": enumerator_id},
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["session"]["status"] == "open"


@then('the last request failed with status {status:d} and code "{code}"')
def step_last_failed(context, status: int, code: str):
    resp = context.last_response
    assert resp.status_code == status, resp.text
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["code"] == code
