"""Client session state machine tests."""

import asyncio

import pytest

from blindtest.client import CurrentSession, InvalidTransition, SessionStatus

USER = {"user": {"id": "u1", "email": "a@example.com"}, "session": {"id": "s1"}}


def test_starts_pending():
    state = CurrentSession()
    assert state.status is SessionStatus.PENDING
    assert state.snapshot.is_pending
    assert state.data is None


def test_resolve_to_authenticated():
    state = CurrentSession()
    state.resolve(USER)
    assert state.status is SessionStatus.AUTHENTICATED
    assert state.snapshot.user == USER["user"]


def test_resolve_to_unauthenticated():
    state = CurrentSession()
    state.resolve(None)
    assert state.status is SessionStatus.UNAUTHENTICATED
    assert state.snapshot.user is None


def test_sign_in_after_sign_out():
    state = CurrentSession()
    state.resolve(USER)
    state.clear()
    state.resolve(USER)
    assert state.status is SessionStatus.AUTHENTICATED


def test_clear_when_unauthenticated_is_noop():
    state = CurrentSession()
    events = []
    state.resolve(None)
    state.subscribe(events.append)

    state.clear()
    assert events == []
    assert state.status is SessionStatus.UNAUTHENTICATED


def test_unauthenticated_cannot_resolve_unauthenticated_again():
    state = CurrentSession()
    state.resolve(None)
    with pytest.raises(InvalidTransition):
        state.resolve(None)


def test_subscribers_see_every_transition():
    state = CurrentSession()
    events = []
    unsubscribe = state.subscribe(lambda snapshot: events.append(snapshot.status))

    state.resolve(USER)
    state.clear()
    unsubscribe()
    state.resolve(USER)

    assert events == [SessionStatus.AUTHENTICATED, SessionStatus.UNAUTHENTICATED]


@pytest.mark.asyncio
async def test_resolved_waits_for_first_transition():
    state = CurrentSession()
    waiter = asyncio.create_task(state.resolved())
    await asyncio.sleep(0)
    assert not waiter.done()

    state.resolve(USER)
    snapshot = await asyncio.wait_for(waiter, timeout=1)
    assert snapshot.status is SessionStatus.AUTHENTICATED
