"""
Short-term memory store - bounded, relevance-ranked conversation buffer.

Holds at most ``max_size`` recent exchanges in memory together with an
inverted topic index (topic → positions).  The index is derived state:
it is rebuilt wholesale after pruning because positions renumber.

Not safe for concurrent mutation; an owner sharing it across threads
must wrap it in its own lock.
"""

from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set
from zoneinfo import ZoneInfo

from loguru import logger

from memory.policies import context_relevance, score_relevance, select_survivors
from memory.schemas import Clock, Conversation, MemoryStats, SystemClock
from memory.topics import extract_topics


def build_topic_index(conversations: Sequence[Conversation]) -> Dict[str, Set[int]]:
    """Build the topic → positions index by scanning every conversation."""
    index: Dict[str, Set[int]] = defaultdict(set)
    for position, conversation in enumerate(conversations):
        for topic in conversation.topics:
            index[topic].add(position)
    return dict(index)


def render_conversations(conversations: Sequence[Conversation]) -> str:
    """Render exchanges as ``User:``/``Assistant:`` lines, blank line between."""
    return "\n\n".join(
        f"User: {c.user_input}\nAssistant: {c.ai_response}" for c in conversations
    )


class ShortTermMemoryStore:
    """
    Short-term memory store.

    Keeps the most relevant recent conversations, evicting by a
    recency-dominated composite score once ``max_size`` is exceeded.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        clock: Optional[Clock] = None,
        recent_window: Optional[int] = None,
        context_top_k: Optional[int] = None,
    ) -> None:
        from infrastructure.config import ST_CONTEXT_TOP_K, ST_MAX_SIZE, ST_RECENT_WINDOW

        self.max_size = ST_MAX_SIZE if max_size is None else max_size
        if self.max_size < 1:
            raise ValueError(f"max_size must be positive, got {self.max_size}")
        self.recent_window = ST_RECENT_WINDOW if recent_window is None else recent_window
        self.context_top_k = ST_CONTEXT_TOP_K if context_top_k is None else context_top_k
        self.clock = clock or SystemClock()

        self._conversations: List[Conversation] = []
        self._topic_index: Dict[str, Set[int]] = {}

    # ── writes ────────────────────────────────────────────────────────────

    def add_interaction(self, user_input: str, ai_response: str) -> Conversation:
        """Record one exchange; prunes if the store grows past ``max_size``."""
        topics = extract_topics(f"{user_input} {ai_response}")
        recent = self._conversations[-self.recent_window:] if self.recent_window > 0 else []
        conversation = Conversation(
            timestamp=self.clock.now(),
            user_input=user_input,
            ai_response=ai_response,
            topics=topics,
            relevance_score=score_relevance(topics, recent),
        )

        position = len(self._conversations)
        self._conversations.append(conversation)
        for topic in conversation.topics:
            self._topic_index.setdefault(topic, set()).add(position)

        logger.debug(
            "ST add: {} topics, relevance={:.2f} (size {}/{})",
            len(topics),
            conversation.relevance_score,
            len(self._conversations),
            self.max_size,
        )

        if len(self._conversations) > self.max_size:
            self.prune()
        return conversation

    def prune(self) -> int:
        """
        Evict the lowest-scoring conversations down to ``max_size``.

        Returns the number of evicted conversations.
        """
        before = len(self._conversations)
        if before <= self.max_size:
            return 0

        self._conversations = select_survivors(self._conversations, self.max_size)
        self._topic_index = build_topic_index(self._conversations)

        evicted = before - len(self._conversations)
        logger.debug("ST pruned {} conversation(s), {} retained", evicted, len(self._conversations))
        return evicted

    def clear(self) -> None:
        """Drop every retained conversation."""
        self._conversations = []
        self._topic_index = {}
        logger.info("Cleared short-term memory")

    # ── reads ─────────────────────────────────────────────────────────────

    def ranked(self, current_input: str) -> List[Conversation]:
        """The ``context_top_k`` conversations most relevant to ``current_input``."""
        query_topics = extract_topics(current_input)
        size = len(self._conversations)
        order = sorted(
            range(size),
            key=lambda i: (
                context_relevance(self._conversations[i], query_topics, i, size),
                i,
            ),
            reverse=True,
        )
        return [self._conversations[i] for i in order[: self.context_top_k]]

    def get_context(self, current_input: str) -> str:
        """Render ``ranked(current_input)``, most relevant first."""
        return render_conversations(self.ranked(current_input))

    def positions_for(self, topic: str) -> Set[int]:
        """Positions of conversations containing ``topic``."""
        return set(self._topic_index.get(topic, ()))

    def render_history(self) -> str:
        """All retained conversations in chronological order."""
        return render_conversations(self._conversations)

    @property
    def conversations(self) -> List[Conversation]:
        return list(self._conversations)

    @property
    def topic_index(self) -> Dict[str, Set[int]]:
        return {topic: set(positions) for topic, positions in self._topic_index.items()}

    def conversation_count(self) -> int:
        return len(self._conversations)

    def __len__(self) -> int:
        return len(self._conversations)

    def memory_stats(self) -> MemoryStats:
        """Counts, unique topics, average relevance and time span."""
        count = len(self._conversations)
        if count == 0:
            return MemoryStats(conversation_count=0, unique_topics=0, average_relevance=0.0)

        timestamps = [c.timestamp for c in self._conversations]
        return MemoryStats(
            conversation_count=count,
            unique_topics=len(self._topic_index),
            average_relevance=sum(c.relevance_score for c in self._conversations) / count,
            earliest=_format_timestamp(min(timestamps)),
            latest=_format_timestamp(max(timestamps)),
        )


def _format_timestamp(ts: float) -> str:
    from infrastructure.config import TIMEZONE

    return datetime.fromtimestamp(ts, ZoneInfo(TIMEZONE)).strftime("%Y-%m-%d %H:%M:%S")
