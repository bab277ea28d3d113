from __future__ import annotations

import json
from pathlib import Path

import pytest

from memory.errors import LongTermStoreError
from memory.lt_store import SUMMARY_KEY, LongTermMemoryStore


def test_store_overwrites_and_retrieve_missing_is_none() -> None:
    store = LongTermMemoryStore()
    store.store(SUMMARY_KEY, "first")
    store.store(SUMMARY_KEY, "second")

    assert store.retrieve(SUMMARY_KEY) == "second"
    assert store.retrieve("nope") is None
    assert len(store) == 1
    assert SUMMARY_KEY in store


def test_save_then_load_restores_same_map(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "memory.json"
    store = LongTermMemoryStore()
    store.store("conversation_summary", "We talked about Rust.")
    store.store("preference", "likes émoji ✓")

    store.save(path)
    loaded = LongTermMemoryStore.load(path)

    assert loaded.to_dict() == store.to_dict()
    assert json.loads(path.read_text(encoding="utf-8")) == store.to_dict()


def test_save_leaves_no_temp_files(tmp_path: Path) -> None:
    path = tmp_path / "memory.json"
    LongTermMemoryStore({"a": "1"}).save(path)
    LongTermMemoryStore({"a": "2"}).save(path)

    assert [p.name for p in tmp_path.iterdir()] == ["memory.json"]
    assert LongTermMemoryStore.load(path).retrieve("a") == "2"


def test_add_memory_uses_timestamped_key() -> None:
    store = LongTermMemoryStore()
    key = store.add_memory("hi", "hello")

    assert key.startswith("memory_")
    assert store.retrieve(key) == "User: hi\nAssistant: hello"


def test_load_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(LongTermStoreError) as excinfo:
        LongTermMemoryStore.load(tmp_path / "missing.json")
    assert excinfo.value.path == str(tmp_path / "missing.json")


def test_load_or_empty_treats_missing_file_as_empty(tmp_path: Path) -> None:
    store = LongTermMemoryStore.load_or_empty(tmp_path / "missing.json")
    assert len(store) == 0


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps(["a", "b"]),
        json.dumps({"key": 3}),
    ],
)
def test_load_rejects_malformed_snapshot(tmp_path: Path, content: str) -> None:
    path = tmp_path / "memory.json"
    path.write_text(content)

    with pytest.raises(LongTermStoreError):
        LongTermMemoryStore.load(path)
    # a present-but-broken file is not silently replaced
    with pytest.raises(LongTermStoreError):
        LongTermMemoryStore.load_or_empty(path)


def test_save_to_unwritable_location_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("x")

    with pytest.raises(LongTermStoreError):
        LongTermMemoryStore({"a": "b"}).save(blocker / "memory.json")
