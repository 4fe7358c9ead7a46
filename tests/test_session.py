from __future__ import annotations

from bruriah.client.session import INITIAL_SESSION, SIGNED_IN, SIGNED_OUT, AuthSession, AuthUser


def test_subscriber_gets_initial_session_then_changes() -> None:
    session = AuthSession()
    events = []

    with session.subscribe(lambda event, user: events.append((event, user))):
        session.sign_in(AuthUser(id="u1", username="dina"))
        session.sign_out()

    assert events == [
        (INITIAL_SESSION, None),
        (SIGNED_IN, AuthUser(id="u1", username="dina")),
        (SIGNED_OUT, None),
    ]


def test_leaving_scope_unsubscribes() -> None:
    session = AuthSession()
    events = []

    with session.subscribe(lambda event, user: events.append(event)) as subscription:
        pass

    session.sign_in(AuthUser(id="u1", username="dina"))

    assert events == [INITIAL_SESSION]
    assert subscription.active is False
    subscription.unsubscribe()


def test_sign_out_without_user_is_silent() -> None:
    session = AuthSession()
    events = []
    session.subscribe(lambda event, user: events.append(event))

    session.sign_out()

    assert events == [INITIAL_SESSION]
