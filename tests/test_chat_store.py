from __future__ import annotations

import pytest

from bruriah.models import Profile
from bruriah.services.chat_store import ChatNotFoundError


def test_messages_come_back_in_insertion_order(store) -> None:
    chat = store.create_chat("p1")
    store.add_message(chat.id, "user", "What is a noun?")
    store.add_message(chat.id, "assistant", "A noun names a person, place or thing.")
    store.add_message(chat.id, "user", "Thanks!")

    messages = store.get_messages(chat.id)

    assert [m.content for m in messages] == [
        "What is a noun?",
        "A noun names a person, place or thing.",
        "Thanks!",
    ]
    assert all(m.chat_id == chat.id for m in messages)


def test_new_chat_defaults_and_rename(store) -> None:
    chat = store.create_chat("p1")
    assert chat.title == "New Chat"

    store.rename_chat(chat.id, "Fractions")

    assert store.get_chat(chat.id).title == "Fractions"


def test_list_chats_filters_by_profile_newest_first(store) -> None:
    first = store.create_chat("p1", title="first")
    store.create_chat("p2", title="other user")
    second = store.create_chat("p1", title="second")

    chats = store.list_chats("p1")

    assert [c.id for c in chats] == [second.id, first.id]


def test_unknown_chat_raises_not_found(store) -> None:
    with pytest.raises(ChatNotFoundError):
        store.get_messages("nope")


@pytest.mark.parametrize("chat_id", ["../etc/passwd", "a/b", "", "x" * 65])
def test_unsafe_chat_ids_are_rejected(store, chat_id) -> None:
    with pytest.raises(ValueError):
        store.get_messages(chat_id)


def test_chats_grouped_by_user_for_admin(store) -> None:
    profile = store.save_profile(Profile(auth_user_id="auth-1", username="dina"))
    store.create_chat(profile.id, title="Math")
    store.create_chat(profile.id, title="Science")
    store.create_chat("orphan", title="Lost")

    groups = {g["userId"]: g for g in store.list_chats_by_user()}

    assert groups["auth-1"]["username"] == "dina"
    assert sorted(c["title"] for c in groups["auth-1"]["chats"]) == ["Math", "Science"]
    assert groups["Unknown User"]["username"] == "Unknown Username"
    assert [c["title"] for c in groups["Unknown User"]["chats"]] == ["Lost"]


def test_profile_lookup_by_auth_user(store) -> None:
    saved = store.save_profile(Profile(auth_user_id="auth-2", username="avi", grade="5"))

    found = store.get_profile_by_user("auth-2")

    assert found == saved
    assert found.to_context().grade == "5"
    assert store.get_profile_by_user("nobody") is None
