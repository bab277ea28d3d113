from __future__ import annotations

import json
import threading
from pathlib import Path

import pytest

from memory.errors import KnowledgeDocumentError
from memory.kb_store import KnowledgeBaseHandler, KnowledgeDocumentStore


# ── static keyword index ─────────────────────────────────────────────────


def test_keyword_match_returns_content(knowledge_file: Path) -> None:
    handler = KnowledgeBaseHandler(knowledge_file)
    assert handler.retrieve_information("tell me about rust") == "Rust is a systems language."


def test_keyword_match_is_case_insensitive(knowledge_file: Path) -> None:
    handler = KnowledgeBaseHandler(knowledge_file)
    assert handler.retrieve_information("RUST please") == "Rust is a systems language."
    assert handler.retrieve_information("python tips") == "Python is dynamically typed."


def test_keyword_must_be_whole_word(knowledge_file: Path) -> None:
    handler = KnowledgeBaseHandler(knowledge_file)
    assert handler.retrieve_information("trust me") == ""


def test_multiple_matches_newline_joined(knowledge_file: Path) -> None:
    handler = KnowledgeBaseHandler(knowledge_file)
    assert handler.retrieve_information("rust or python") == (
        "Rust is a systems language.\nPython is dynamically typed."
    )


def test_entry_matching_several_keywords_returned_once(knowledge_file: Path) -> None:
    handler = KnowledgeBaseHandler(knowledge_file)
    assert handler.retrieve_information("rust lang") == "Rust is a systems language."


@pytest.mark.parametrize(
    "content",
    [
        None,  # missing file
        "{broken",
        json.dumps({"keywords": ["a"], "content": "b"}),
        json.dumps([{"keywords": ["a"]}]),
        json.dumps([{"keywords": "rust", "content": "b"}]),
    ],
)
def test_bad_knowledge_file_is_fatal(tmp_path: Path, content) -> None:
    path = tmp_path / "kb.json"
    if content is not None:
        path.write_text(content)

    with pytest.raises(SystemExit) as excinfo:
        KnowledgeBaseHandler(path)
    assert excinfo.value.code == 1


# ── shared key/value document ────────────────────────────────────────────


def test_missing_document_reads_as_empty(tmp_path: Path) -> None:
    store = KnowledgeDocumentStore(tmp_path / "doc.json")
    assert store.get_entry("caching") is None
    assert store.keys() == []


def test_add_and_update_overwrite(tmp_path: Path) -> None:
    store = KnowledgeDocumentStore(tmp_path / "doc.json")
    store.add_entry("caching", "first")
    store.update_entry("caching", "second")

    assert store.get_entry("caching") == "second"
    assert json.loads((tmp_path / "doc.json").read_text()) == {"caching": "second"}


def test_append_creates_then_extends(tmp_path: Path) -> None:
    store = KnowledgeDocumentStore(tmp_path / "doc.json")

    assert store.append_entry("caching", "one") == "one"
    assert store.append_entry("caching", "two") == "one\ntwo"
    assert store.get_entry("caching") == "one\ntwo"


def test_append_to_empty_entry_keeps_separator(tmp_path: Path) -> None:
    store = KnowledgeDocumentStore(tmp_path / "doc.json")
    store.add_entry("caching", "")

    assert store.append_entry("caching", "one") == "\none"


def test_document_persists_across_instances(tmp_path: Path) -> None:
    KnowledgeDocumentStore(tmp_path / "doc.json").add_entry("k", "v")
    assert KnowledgeDocumentStore(tmp_path / "doc.json").get_entry("k") == "v"


@pytest.mark.parametrize("content", ["not json", json.dumps(["a"])])
def test_malformed_document_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "doc.json"
    path.write_text(content)
    store = KnowledgeDocumentStore(path)

    with pytest.raises(KnowledgeDocumentError):
        store.get_entry("k")
    with pytest.raises(KnowledgeDocumentError):
        store.add_entry("k", "v")
    # the broken document is left as it was
    assert path.read_text() == content


def test_concurrent_writers_lose_no_updates(tmp_path: Path) -> None:
    store = KnowledgeDocumentStore(tmp_path / "doc.json")

    def writer(worker: int) -> None:
        for i in range(20):
            store.add_entry(f"w{worker}-{i}", "x")
            store.append_entry("shared", str(worker))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store.keys()) == 81
    assert len(store.get_entry("shared").split("\n")) == 80
