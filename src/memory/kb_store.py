"""
Knowledge base stores.

Two independent backings:

  KnowledgeBaseHandler     - static keyword index loaded once from a JSON
                             list of ``{"keywords": [...], "content": "..."}``.
                             Missing or malformed file is fatal at startup.
  KnowledgeDocumentStore   - one shared JSON object of string fields,
                             read-modify-written on every call.  Failures
                             are recoverable ``KnowledgeDocumentError``.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger

from memory.errors import KnowledgeBaseLoadError, KnowledgeDocumentError
from memory.schemas import KnowledgeEntry

PathLike = Union[str, Path]


# ═══════════════════════════════════════════════════════════════════════════════
# Static keyword index
# ═══════════════════════════════════════════════════════════════════════════════


def load_knowledge_entries(file_path: PathLike) -> List[KnowledgeEntry]:
    """Parse and validate the static knowledge file."""
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as e:
        raise KnowledgeBaseLoadError(f"Failed to read knowledge base file: {e}") from e
    except ValueError as e:
        raise KnowledgeBaseLoadError(f"Failed to parse knowledge base file: {e}") from e

    if not isinstance(raw, list):
        raise KnowledgeBaseLoadError("Failed to parse knowledge base file: expected a list of entries")
    try:
        return [KnowledgeEntry.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise KnowledgeBaseLoadError(f"Failed to parse knowledge base file: invalid entry ({e})") from e


class KnowledgeBaseHandler:
    """
    Keyword retrieval over a static knowledge file.

    Entries are loaded once in ``__init__`` and never re-read.  A bad
    file terminates the process: keyword retrieval has no degraded mode.
    """

    def __init__(self, file_path: Optional[PathLike] = None) -> None:
        if file_path is None:
            from infrastructure.config import KNOWLEDGE_BASE_FILE
            file_path = KNOWLEDGE_BASE_FILE
        try:
            self._entries = tuple(load_knowledge_entries(file_path))
        except KnowledgeBaseLoadError as e:
            logger.critical("{} ({})", e, file_path)
            raise SystemExit(1) from e
        logger.info("Loaded {} knowledge entries from {}", len(self._entries), file_path)

    @property
    def entries(self) -> List[KnowledgeEntry]:
        return list(self._entries)

    def retrieve_information(self, query: str) -> str:
        """Content of every entry with a keyword among the query's words, newline-joined."""
        query_words = {word.lower() for word in query.split()}
        matches = [
            entry.content
            for entry in self._entries
            if any(keyword.lower() in query_words for keyword in entry.keywords)
        ]
        return "\n".join(matches)


# ═══════════════════════════════════════════════════════════════════════════════
# Shared key/value document
# ═══════════════════════════════════════════════════════════════════════════════


class KnowledgeDocumentStore:
    """
    Key/value entries kept in one JSON document on disk.

    Every operation reads the whole document; writes mutate it in memory
    and write the whole document back.  This instance must be the only
    writer of its file: one lock spans each read-modify-write so
    concurrent callers sharing the instance can't lose updates.
    """

    def __init__(self, file_path: Optional[PathLike] = None) -> None:
        if file_path is None:
            from infrastructure.config import KNOWLEDGE_DOCUMENT_FILE
            file_path = KNOWLEDGE_DOCUMENT_FILE
        self.file_path = Path(file_path)
        self._write_lock = threading.Lock()

    def get_entry(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or ``None``."""
        value = self._read_document().get(key)
        if value is not None and not isinstance(value, str):
            raise KnowledgeDocumentError(f"Entry {key!r} is not a string")
        return value

    def add_entry(self, key: str, value: str) -> None:
        """Set ``key`` to ``value`` (plain overwrite)."""
        with self._write_lock:
            document = self._read_document()
            document[key] = value
            self._write_document(document)
        logger.debug("KB document set: {}", key)

    def update_entry(self, key: str, value: str) -> None:
        """Same as ``add_entry``: overwrite, never merge."""
        self.add_entry(key, value)

    def append_entry(self, key: str, text: str, separator: str = "\n") -> str:
        """
        Append ``text`` to the entry for ``key`` (creating it if absent)
        in a single read-modify-write.  Returns the new value.
        """
        with self._write_lock:
            document = self._read_document()
            existing = document.get(key)
            if existing is not None and not isinstance(existing, str):
                raise KnowledgeDocumentError(f"Entry {key!r} is not a string")
            value = text if existing is None else f"{existing}{separator}{text}"
            document[key] = value
            self._write_document(document)
        logger.debug("KB document append: {}", key)
        return value

    def keys(self) -> List[str]:
        return sorted(self._read_document())

    # ── document I/O ──────────────────────────────────────────────────────

    def _read_document(self) -> Dict[str, object]:
        # A document that was never written is empty, not an error
        if not self.file_path.exists():
            return {}
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to read knowledge document {}: {}", self.file_path, e)
            raise KnowledgeDocumentError(f"Failed to read knowledge document: {e}") from e
        if not isinstance(document, dict):
            raise KnowledgeDocumentError("Knowledge document must be a JSON object")
        return document

    def _write_document(self, document: Dict[str, object]) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.file_path.parent, prefix=f".{self.file_path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self.file_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write knowledge document {}: {}", self.file_path, e)
            raise KnowledgeDocumentError(f"Failed to write knowledge document: {e}") from e
