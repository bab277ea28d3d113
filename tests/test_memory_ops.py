from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest
from sqlalchemy.exc import SQLAlchemyError

from infrastructure.llm.llm_provider import CompletionTransportError
from memory.kb_store import KnowledgeBaseHandler, KnowledgeDocumentStore
from memory.learning import LearningManager
from memory.lt_store import SUMMARY_KEY, LongTermMemoryStore
from memory.memory_ops import ContextAssembler, ConversationSummarizer
from memory.st_store import ShortTermMemoryStore

from fakes import FakeClock, FakeCompleter, FakeLog


@pytest.fixture
def st_store(clock: FakeClock) -> ShortTermMemoryStore:
    return ShortTermMemoryStore(max_size=10, clock=clock)


@pytest.fixture
def knowledge_base(knowledge_file: Path) -> KnowledgeBaseHandler:
    return KnowledgeBaseHandler(knowledge_file)


def _word_count(text: str) -> int:
    return len(text.split())


def test_assemble_orders_summary_history_then_knowledge(
    st_store: ShortTermMemoryStore, knowledge_base: KnowledgeBaseHandler
) -> None:
    lt_store = LongTermMemoryStore({SUMMARY_KEY: "Earlier we discussed languages."})
    st_store.add_interaction("hi there", "hello")
    assembler = ContextAssembler(st_store, lt_store, knowledge_base)

    context = assembler.assemble("tell me about rust")

    assert context == (
        "Earlier we discussed languages."
        "\n\nUser: hi there\nAssistant: hello"
        "\n\nRust is a systems language."
    )


def test_assemble_skips_empty_sections(
    st_store: ShortTermMemoryStore, knowledge_base: KnowledgeBaseHandler
) -> None:
    assembler = ContextAssembler(st_store, LongTermMemoryStore(), knowledge_base)

    assert assembler.assemble("tell me about rust") == "Rust is a systems language."
    assert assembler.assemble("nothing relevant") == ""


def test_assemble_appends_learned_context_when_attached(
    st_store: ShortTermMemoryStore,
    knowledge_base: KnowledgeBaseHandler,
    tmp_path: Path,
    fixed_clock: FakeClock,
) -> None:
    learning = LearningManager(FakeLog(), KnowledgeDocumentStore(tmp_path / "doc.json"), clock=fixed_clock)
    learning.learn_from_interaction("What is caching?", "Caching stores results for reuse.")
    assembler = ContextAssembler(st_store, LongTermMemoryStore(), knowledge_base, learning=learning)

    context = assembler.assemble("explain caching")

    assert context.startswith("Caching stores results for reuse")
    assert context.endswith("Caching stores results for reuse.")


class _UnreachableLog(FakeLog):
    def get(self, key: str) -> Optional[str]:
        raise SQLAlchemyError("database is locked")


def _write_corrupt_document(path: Path) -> Path:
    path.write_text("{not json", encoding="utf-8")
    return path


@pytest.mark.parametrize("broken", ["document", "log"])
def test_unreadable_learning_stores_drop_only_learned_context(
    st_store: ShortTermMemoryStore,
    knowledge_base: KnowledgeBaseHandler,
    tmp_path: Path,
    broken: str,
) -> None:
    if broken == "document":
        learning = LearningManager(
            FakeLog(), KnowledgeDocumentStore(_write_corrupt_document(tmp_path / "doc.json"))
        )
    else:
        learning = LearningManager(_UnreachableLog(), KnowledgeDocumentStore(tmp_path / "doc.json"))
    lt_store = LongTermMemoryStore({SUMMARY_KEY: "Earlier we discussed languages."})
    st_store.add_interaction("hi there", "hello")
    assembler = ContextAssembler(st_store, lt_store, knowledge_base, learning=learning)

    context = assembler.assemble("tell me about rust")

    assert context == (
        "Earlier we discussed languages."
        "\n\nUser: hi there\nAssistant: hello"
        "\n\nRust is a systems language."
    )




def test_token_budget_drops_knowledge_then_history(
    st_store: ShortTermMemoryStore, knowledge_base: KnowledgeBaseHandler, monkeypatch: pytest.MonkeyPatch
) -> None:
    lt_store = LongTermMemoryStore({SUMMARY_KEY: "short summary"})
    st_store.add_interaction("hi there", "hello")
    assembler = ContextAssembler(st_store, lt_store, knowledge_base, max_tokens=8)
    monkeypatch.setattr(assembler, "count_tokens", _word_count)

    assert assembler.assemble("rust") == "short summary\n\nUser: hi there\nAssistant: hello"

    assembler.max_tokens = 3
    assert assembler.assemble("rust") == "short summary"


def test_summarizer_runs_every_threshold_turns(st_store: ShortTermMemoryStore) -> None:
    lt_store = LongTermMemoryStore()
    completer = FakeCompleter(["We greeted each other."])
    summarizer = ConversationSummarizer(completer, st_store, lt_store, threshold=2)
    st_store.add_interaction("hi there", "hello")

    assert summarizer.record_turn() is None
    assert summarizer.record_turn() == "We greeted each other."

    assert lt_store.retrieve(SUMMARY_KEY) == "We greeted each other."
    prompt = completer.calls[0]["prompt"]
    assert prompt.startswith("Summarize the following conversation in 3-5 sentences:")
    assert "User: hi there\nAssistant: hello" in prompt
    # counter restarts after a summary
    assert summarizer.record_turn() is None


def test_summarizer_needs_history(st_store: ShortTermMemoryStore) -> None:
    summarizer = ConversationSummarizer(FakeCompleter(), st_store, LongTermMemoryStore(), threshold=1)
    assert summarizer.record_turn() is None


def test_summarizer_failure_keeps_previous_summary(st_store: ShortTermMemoryStore) -> None:
    lt_store = LongTermMemoryStore({SUMMARY_KEY: "old summary"})
    completer = FakeCompleter(error=CompletionTransportError("timed out"))
    summarizer = ConversationSummarizer(completer, st_store, lt_store, threshold=1)
    st_store.add_interaction("hi there", "hello")

    assert summarizer.record_turn() is None
    assert lt_store.retrieve(SUMMARY_KEY) == "old summary"
