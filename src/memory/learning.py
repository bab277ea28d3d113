"""
Learning manager - turns interactions into durable knowledge.

Write path (``learn_from_interaction``):
  1. Extract a ``LearningContext`` (insights + related topics).
  2. Persist every insight to the conversation log's side table under
     ``insight:{topic}:{epoch_seconds}`` and as the latest insight for
     the topic under ``topic:{topic}``.
  3. Append the response to the knowledge document entry of every
     related topic.
  4. Replace the cached context of every related topic.

Read path (``get_relevant_context``): cache hits, then ``topic:`` side
table hits, then knowledge document hits.

The cache lock is held only while reading or writing the cache, never
around log or document I/O.  Nothing is rolled back when a later sink
fails after an earlier one succeeded.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from infrastructure.observability import observe, update_current_observation
from memory.errors import KnowledgeDocumentError, LearningError
from memory.kb_store import KnowledgeDocumentStore
from memory.schemas import Clock, Insight, KnowledgeLog, LearningContext, SystemClock
from memory.topics import extract_sentence_insights, extract_topics, lookup_keys, normalize_topic

USER_INPUT_CONFIDENCE = 0.7
AI_RESPONSE_CONFIDENCE = 0.8


def _learning_topics(text: str) -> List[str]:
    return sorted({key for key in (normalize_topic(t) for t in extract_topics(text)) if key})


def extract_learning_context(user_input: str, ai_response: str, now: float) -> LearningContext:
    """
    Derive insights from one exchange.

    User-input bigram topics each yield an insight (confidence 0.7) whose
    context is the whole input.  Every response sentence longer than 20
    characters yields an insight (confidence 0.8) keyed by its first word.
    """
    context = LearningContext()

    for topic in _learning_topics(user_input):
        context.insights.append(Insight(
            topic=topic,
            context=user_input,
            confidence=USER_INPUT_CONFIDENCE,
            source="user_input",
            timestamp=now,
        ))

    for first_word, sentence in extract_sentence_insights(ai_response):
        topic = normalize_topic(first_word)
        if not topic:
            continue
        context.insights.append(Insight(
            topic=topic,
            context=sentence,
            confidence=AI_RESPONSE_CONFIDENCE,
            source="ai_response",
            timestamp=now,
        ))

    context.related_topics = sorted({insight.topic for insight in context.insights})
    context.metadata = {
        "learned_at": datetime.fromtimestamp(now, timezone.utc).isoformat(),
        "insight_count": str(len(context.insights)),
    }
    return context


@dataclass
class LearningSummary:
    """
    Aggregate over the context cache.

    A context cached under several topics is counted once in
    ``total_insights``, not once per topic.
    """
    topics: List[str] = field(default_factory=list)
    total_insights: int = 0

    def format(self) -> str:
        return (
            "Learning Summary:\n\n"
            f"Topics Learned: {', '.join(self.topics)}\n"
            f"\nTotal Insights: {self.total_insights}\n"
        )


class LearningManager:
    """
    Owns the per-topic context cache and writes learned knowledge to the
    conversation log and the knowledge document.

    Dependencies (injected via ``__init__``):
        log        - side table with ``put(key, value)`` / ``get(key)``
        knowledge  - ``KnowledgeDocumentStore``
        clock      - epoch-seconds clock (defaults to wall clock)
    """

    def __init__(
        self,
        log: KnowledgeLog,
        knowledge: KnowledgeDocumentStore,
        clock: Optional[Clock] = None,
    ) -> None:
        self.log = log
        self.knowledge = knowledge
        self.clock = clock or SystemClock()

        self._cache: Dict[str, LearningContext] = {}
        self._lock = threading.Lock()

        # topic → insights already keyed within _key_second
        self._key_second: Optional[int] = None
        self._key_counts: Dict[str, int] = {}

    # ── write path ────────────────────────────────────────────────────────

    @observe(name="learn_from_interaction")
    def learn_from_interaction(self, user_input: str, ai_response: str) -> LearningContext:
        """
        Learn from one exchange.

        Raises:
            LearningError: a sink failed; earlier writes are kept.
        """
        context = extract_learning_context(user_input, ai_response, self.clock.now())

        for insight in context.insights:
            key = self._insight_key(insight)
            payload = insight.to_json()
            try:
                self.log.put(key, payload)
                self.log.put(f"topic:{insight.topic}", payload)
            except Exception as e:
                logger.error("Failed to persist insight {}: {}", key, e)
                raise LearningError(f"Failed to persist insight {key}: {e}", "conversation_log") from e

        for topic in context.related_topics:
            try:
                self.knowledge.append_entry(topic, ai_response)
            except KnowledgeDocumentError as e:
                raise LearningError(
                    f"Failed to update knowledge entry {topic!r}: {e}", "knowledge_document"
                ) from e

        with self._lock:
            for topic in context.related_topics:
                self._cache[topic] = context

        logger.info(
            "Learned from interaction: {} insights, {} topics",
            len(context.insights),
            len(context.related_topics),
        )
        update_current_observation(
            metadata={
                "insights": len(context.insights),
                "topics": len(context.related_topics),
            },
        )
        return context

    def _insight_key(self, insight: Insight) -> str:
        """
        ``insight:{topic}:{epoch_seconds}``; later insights for the same
        topic within the same second get a ``:{n}`` suffix.
        """
        second = int(insight.timestamp)
        with self._lock:
            if second != self._key_second:
                self._key_second = second
                self._key_counts = {}
            n = self._key_counts.get(insight.topic, 0)
            self._key_counts[insight.topic] = n + 1
        key = f"insight:{insight.topic}:{second}"
        return key if n == 0 else f"{key}:{n}"

    # ── read path ─────────────────────────────────────────────────────────

    def get_relevant_context(self, query: str) -> List[str]:
        """
        Collect known context for ``query``: cache hits first, then
        persisted latest insights, then knowledge document entries.
        Identical strings are returned once.
        """
        keys = lookup_keys(query)
        results: List[str] = []

        def _add(text: str) -> None:
            if text and text not in results:
                results.append(text)

        with self._lock:
            cached = [self._cache[key] for key in keys if key in self._cache]
        for context in cached:
            for insight in context.insights:
                _add(insight.context)

        for key in keys:
            raw = self.log.get(f"topic:{key}")
            if raw is None:
                continue
            try:
                _add(Insight.from_json(raw).context)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Skipping malformed insight under topic:{}: {}", key, e)

        for key in keys:
            entry = self.knowledge.get_entry(key)
            if entry is not None:
                _add(entry)

        logger.debug("Relevant context for {} key(s): {} item(s)", len(keys), len(results))
        return results

    def get_learning_summary(self) -> LearningSummary:
        """Topics and insight count over every distinct cached context."""
        with self._lock:
            contexts = list(self._cache.values())

        distinct: List[LearningContext] = []
        for context in contexts:
            if not any(context is seen for seen in distinct):
                distinct.append(context)

        topics = sorted({topic for context in distinct for topic in context.related_topics})
        return LearningSummary(
            topics=topics,
            total_insights=sum(len(context.insights) for context in distinct),
        )

    def cached_topics(self) -> List[str]:
        with self._lock:
            return sorted(self._cache)

    def cached_context(self, topic: str) -> Optional[LearningContext]:
        with self._lock:
            return self._cache.get(normalize_topic(topic))
