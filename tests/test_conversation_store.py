# tests/test_conversation_store.py

from __future__ import annotations

import sqlite3
import time

import pytest

from akara.storage.conversation_store import DEFAULT_TITLE, ConversationStore


def test_conversation_lifecycle(store: ConversationStore) -> None:
    conv = store.create_conversation("conv-1")
    assert conv.title == DEFAULT_TITLE
    assert store.count_conversations() == 1

    store.update_title("conv-1", "Trip to Lisbon")
    assert store.get_conversation("conv-1").title == "Trip to Lisbon"

    store.delete_conversation("conv-1")
    assert store.get_conversation("conv-1") is None
    assert store.get_messages("conv-1") == []


def test_messages_in_order_and_last_window(store: ConversationStore) -> None:
    store.create_conversation("conv-1")
    for i in range(5):
        store.add_message("conv-1", "user" if i % 2 == 0 else "assistant", f"m{i}")

    assert [m.content for m in store.get_messages("conv-1")] == ["m0", "m1", "m2", "m3", "m4"]
    assert [m.content for m in store.get_messages("conv-1", last=2)] == ["m3", "m4"]
    assert store.get_messages("conv-1", last=0) == []


def test_add_message_validates_role_and_conversation(store: ConversationStore) -> None:
    store.create_conversation("conv-1")
    with pytest.raises(ValueError):
        store.add_message("conv-1", "robot", "beep")
    with pytest.raises(sqlite3.IntegrityError):
        store.add_message("no-such-conversation", "assistant", "orphan")


def test_list_is_most_recent_first(store: ConversationStore) -> None:
    store.create_conversation("old")
    time.sleep(0.01)
    store.create_conversation("new")
    assert [c.id for c in store.list_conversations()] == ["new", "old"]

    time.sleep(0.01)
    store.touch_conversation("old")

    assert [c.id for c in store.list_conversations()][0] == "old"


def test_generated_ids_and_reopen(tmp_path) -> None:
    path = tmp_path / "db" / "chat.sqlite3"
    conv = ConversationStore(path).create_conversation(title="  ")
    assert conv.id and conv.title == DEFAULT_TITLE

    reopened = ConversationStore(path)
    assert reopened.get_conversation(conv.id) is not None
