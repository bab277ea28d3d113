"""
Memory schemas and interfaces.

Dataclasses for conversations, insights, learning contexts and
knowledge entries.  Protocol definitions for the conversation log,
the completion provider and the clock.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Protocol


@dataclass(frozen=True)
class Conversation:
    """
    One retained exchange in short-term memory.

    ``topics`` and ``relevance_score`` are computed once at insertion
    and never re-derived.
    """
    timestamp: float  # epoch seconds
    user_input: str
    ai_response: str
    topics: List[str] = field(default_factory=list)  # deduplicated, sorted
    relevance_score: float = 1.0


@dataclass(frozen=True)
class Insight:
    """
    One durably recorded observation tying a topic to a snippet of text.

    Written once under ``insight:{topic}:{epoch_seconds}`` in the
    conversation log's side table; never mutated.
    """
    topic: str
    context: str
    confidence: float  # 0.0-1.0
    source: Literal["user_input", "ai_response"]
    timestamp: float  # epoch seconds

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "topic": self.topic,
            "context": self.context,
            "confidence": self.confidence,
            "source": self.source,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Insight":
        """Create from dictionary."""
        confidence = float(data["confidence"])
        if not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence out of range: {confidence}")
        source = data["source"]
        if source not in ("user_input", "ai_response"):
            raise ValueError(f"unknown insight source: {source!r}")
        return cls(
            topic=data["topic"],
            context=data["context"],
            confidence=confidence,
            source=source,
            timestamp=float(data["timestamp"]),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, raw: str) -> "Insight":
        return cls.from_dict(json.loads(raw))


@dataclass
class LearningContext:
    """
    Everything learned from a single interaction.

    Cached in memory per topic (last write wins); the insights
    themselves stay durable in the conversation log.
    """
    insights: List[Insight] = field(default_factory=list)
    related_topics: List[str] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class KnowledgeEntry:
    """A static knowledge-base entry matched by keyword."""
    keywords: List[str]
    content: str

    @classmethod
    def from_dict(cls, data: Dict) -> "KnowledgeEntry":
        """Create from dictionary; both fields are required."""
        keywords = data["keywords"]
        content = data["content"]
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            raise ValueError("'keywords' must be a list of strings")
        if not isinstance(content, str):
            raise ValueError("'content' must be a string")
        return cls(keywords=list(keywords), content=content)


@dataclass
class MemoryStats:
    """Read-only snapshot of short-term memory."""
    conversation_count: int
    unique_topics: int
    average_relevance: float
    earliest: Optional[str] = None  # formatted for display
    latest: Optional[str] = None

    def format(self) -> str:
        """Human-readable multi-line summary."""
        lines = [
            f"Conversations: {self.conversation_count}",
            f"Unique topics: {self.unique_topics}",
            f"Average relevance: {self.average_relevance:.2f}",
        ]
        if self.earliest and self.latest:
            lines.append(f"Time span: {self.earliest} -> {self.latest}")
        return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Protocol interfaces
# ═══════════════════════════════════════════════════════════════════════════════


class KnowledgeLog(Protocol):
    """
    Relational conversation log (``infrastructure.db.ConversationLog``).

    Append-only conversations plus a key-value side table.
    """

    def save_conversation(self, user_input: str, ai_response: str, personality: str) -> None:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def get(self, key: str) -> Optional[str]:
        ...


class Completer(Protocol):
    """Completion provider: prompt string in, response string out."""

    def complete(self, prompt: str, *, system_prompt: Optional[str] = None) -> str:
        ...


class Clock(Protocol):
    """Clock abstraction - allows controlling time in tests."""

    def now(self) -> float:
        ...


class SystemClock:
    """Wall clock in epoch seconds."""

    def now(self) -> float:
        return time.time()
