"""
Memory system - schemas, policies, stores, learning, and operations.

Memory types:
  - Short-term: Bounded, relevance-ranked recent exchanges (in process)
  - Long-term: Key/value map snapshotted to a JSON file
  - Knowledge base: Static keyword index + shared key/value document
  - Learned: Per-topic insights (conversation log + in-memory cache)
"""

from .schemas import (
    Conversation,
    Insight,
    LearningContext,
    KnowledgeEntry,
    MemoryStats,
    KnowledgeLog,
    Completer,
    Clock,
    SystemClock,
)
from .errors import (
    MemoryPersistenceError,
    LongTermStoreError,
    KnowledgeDocumentError,
    KnowledgeBaseLoadError,
    LearningError,
)
from .topics import extract_topics, extract_sentence_insights
from .st_store import ShortTermMemoryStore, build_topic_index
from .lt_store import LongTermMemoryStore, SUMMARY_KEY
from .kb_store import KnowledgeBaseHandler, KnowledgeDocumentStore
from .learning import LearningManager, LearningSummary
from .memory_ops import ContextAssembler, ConversationSummarizer

__all__ = [
    # Schemas
    "Conversation",
    "Insight",
    "LearningContext",
    "KnowledgeEntry",
    "MemoryStats",
    # Protocols
    "KnowledgeLog",
    "Completer",
    "Clock",
    "SystemClock",
    # Errors
    "MemoryPersistenceError",
    "LongTermStoreError",
    "KnowledgeDocumentError",
    "KnowledgeBaseLoadError",
    "LearningError",
    # Topics
    "extract_topics",
    "extract_sentence_insights",
    # Stores
    "ShortTermMemoryStore",
    "build_topic_index",
    "LongTermMemoryStore",
    "SUMMARY_KEY",
    "KnowledgeBaseHandler",
    "KnowledgeDocumentStore",
    # Learning
    "LearningManager",
    "LearningSummary",
    # Operations
    "ContextAssembler",
    "ConversationSummarizer",
]
