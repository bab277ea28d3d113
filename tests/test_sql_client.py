from __future__ import annotations

from pathlib import Path

import pytest

from infrastructure.db.sql_client import ConversationLog


@pytest.fixture
def log(tmp_path: Path):
    conversation_log = ConversationLog(f"sqlite:///{tmp_path / 'agent.db'}")
    yield conversation_log
    conversation_log.close()


def test_knowledge_put_replaces_existing_key(log: ConversationLog) -> None:
    log.put("topic:caching", "first")
    log.put("topic:caching", "second")

    assert log.get("topic:caching") == "second"
    assert log.get_knowledge("topic:missing") is None


def test_recent_conversations_newest_first(log: ConversationLog) -> None:
    log.save_conversation("one", "a", "Helpful")
    log.save_conversation("two", "b", "Helpful")
    log.save_conversation("three", "c", "Expert")

    recent = log.get_recent_conversations(2)

    assert [(row[1], row[2], row[3]) for row in recent] == [
        ("three", "c", "Expert"),
        ("two", "b", "Helpful"),
    ]
    assert all(row[0] for row in recent)


def test_log_survives_reopen(tmp_path: Path) -> None:
    url = f"sqlite:///{tmp_path / 'agent.db'}"
    first = ConversationLog(url)
    first.save_conversation("hello", "hi", "Helpful")
    first.put("insight:greeting:1", "{}")
    first.close()

    second = ConversationLog(url)
    assert second.get("insight:greeting:1") == "{}"
    assert len(second.get_recent_conversations(10)) == 1
    second.close()
