"""
Memory error taxonomy.

  MemoryPersistenceError       - base for every recoverable store failure
    LongTermStoreError         - snapshot file missing / unreadable / unparsable
    KnowledgeDocumentError     - per-call knowledge document read or write failed
    LearningError              - a sink failed during learn_from_interaction
  KnowledgeBaseLoadError       - static keyword file invalid (fatal at startup)
"""

from typing import Optional


class MemoryPersistenceError(Exception):
    """A memory store could not read or write its backing storage."""


class LongTermStoreError(MemoryPersistenceError):
    """Saving or loading the long-term snapshot failed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class KnowledgeDocumentError(MemoryPersistenceError):
    """Reading or writing the shared knowledge document failed."""


class LearningError(MemoryPersistenceError):
    """Persisting what was learned from one interaction failed.

    ``sink`` names where it failed: ``"conversation_log"`` or
    ``"knowledge_document"``.  Writes that completed before the failure
    are not rolled back.
    """

    def __init__(self, message: str, sink: str) -> None:
        super().__init__(message)
        self.sink = sink


class KnowledgeBaseLoadError(Exception):
    """The static keyword knowledge file is missing or malformed."""
