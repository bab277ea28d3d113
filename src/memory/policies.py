"""
Memory policies - relevance scoring, eviction ranking, context ranking.

Pure business rules for short-term memory (no I/O).
"""

from typing import Iterable, List, Sequence

from .schemas import Conversation

BASE_RELEVANCE = 1.0
OVERLAP_BONUS = 0.2
MAX_RELEVANCE = 5.0

PRUNE_RECENCY_WEIGHT = 0.7
PRUNE_RELEVANCE_WEIGHT = 0.3

CONTEXT_OVERLAP_WEIGHT = 0.6
CONTEXT_AGE_WEIGHT = 0.4


def score_relevance(topics: Iterable[str], recent: Sequence[Conversation]) -> float:
    """
    Insertion-time relevance of a new conversation.

    Score = 1.0 + 0.2 * (number of its topics seen in ``recent``), capped at 5.0
    """
    seen = set()
    for conversation in recent:
        seen.update(conversation.topics)
    overlap = len(set(topics) & seen)
    return min(MAX_RELEVANCE, BASE_RELEVANCE + OVERLAP_BONUS * overlap)


def prune_score(conversation: Conversation) -> float:
    """
    Composite eviction score (higher survives).

    Score = 0.7 * timestamp_seconds + 0.3 * relevance_score

    Epoch seconds dwarf the 0-5 relevance range, so this is recency
    ranking with relevance breaking ties between near-simultaneous entries.
    """
    return (
        PRUNE_RECENCY_WEIGHT * conversation.timestamp
        + PRUNE_RELEVANCE_WEIGHT * conversation.relevance_score
    )


def select_survivors(conversations: Sequence[Conversation], max_size: int) -> List[Conversation]:
    """
    Keep the ``max_size`` highest-scoring conversations.

    Survivors are returned in their original (chronological) order.
    Exact score ties favour the later-inserted conversation.
    """
    if len(conversations) <= max_size:
        return list(conversations)
    ranked = sorted(
        range(len(conversations)),
        key=lambda i: (prune_score(conversations[i]), conversations[i].timestamp, i),
        reverse=True,
    )
    keep = sorted(ranked[:max_size])
    return [conversations[i] for i in keep]


def context_relevance(
    conversation: Conversation,
    query_topics: Iterable[str],
    position: int,
    size: int,
) -> float:
    """
    Read-time relevance of a retained conversation to a new query.

    Score = 0.6 * shared_topics + 0.4 * age_rank

    ``position`` is the chronological index (0 = oldest); the most recent
    conversation has age rank ``size`` and the oldest has age rank 1.
    """
    shared = len(set(conversation.topics) & set(query_topics))
    age_rank = size - (size - 1 - position)
    return CONTEXT_OVERLAP_WEIGHT * shared + CONTEXT_AGE_WEIGHT * age_rank
