"""
Long-term memory store - durable key/value map snapshotted to one JSON file.

Every save writes the full map (temp file + atomic replace); every load
reads the full map.  No per-entry expiry.
"""

import json
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger

from memory.errors import LongTermStoreError

PathLike = Union[str, Path]

SUMMARY_KEY = "conversation_summary"


class LongTermMemoryStore:
    """Long-term memory: string → string, overwrite-on-store."""

    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(data or {})

    def store(self, key: str, value: str) -> None:
        """Insert or replace ``key``."""
        self._data[key] = value
        logger.debug("LT store: {}", key)

    def retrieve(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def add_memory(self, user_input: str, ai_response: str) -> str:
        """Store one exchange under ``memory_{epoch_seconds}``; returns the key."""
        key = f"memory_{int(time.time())}"
        self.store(key, f"User: {user_input}\nAssistant: {ai_response}")
        return key

    def keys(self) -> List[str]:
        return sorted(self._data)

    def to_dict(self) -> Dict[str, str]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    # ── persistence ───────────────────────────────────────────────────────

    def save(self, path: PathLike) -> None:
        """Write the whole map to ``path``, replacing any existing file."""
        path = Path(path)
        try:
            serialized = json.dumps(self._data, ensure_ascii=False, indent=2)
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(serialized)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save long-term memory to {}: {}", path, e)
            raise LongTermStoreError(f"Failed to save long-term memory: {e}", str(path)) from e
        logger.info("Saved {} long-term entries to {}", len(self._data), path)

    @classmethod
    def load(cls, path: PathLike) -> "LongTermMemoryStore":
        """Read a full map from ``path``."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise LongTermStoreError(f"Failed to load long-term memory: {e}", str(path)) from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise LongTermStoreError(
                "Failed to load long-term memory: expected a string-to-string map", str(path)
            )
        logger.info("Loaded {} long-term entries from {}", len(data), path)
        return cls(data)

    @classmethod
    def load_or_empty(cls, path: PathLike) -> "LongTermMemoryStore":
        """Like ``load`` but a missing file means "no prior memory"."""
        try:
            return cls.load(path)
        except LongTermStoreError as e:
            if isinstance(e.__cause__, FileNotFoundError):
                logger.info("No long-term memory at {}, starting empty", path)
                return cls()
            raise
