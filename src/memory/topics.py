"""
Topic extraction - deterministic lexical heuristics, no I/O.

A topic is any pair of adjacent whitespace-separated tokens that are
both longer than ``MIN_TOKEN_LENGTH`` characters, joined by one space.
Identical text always yields identical topics; nothing else about a
topic's meaning may be assumed.
"""

import re
import string
from typing import List, Tuple

MIN_TOKEN_LENGTH = 3
MIN_SENTENCE_LENGTH = 20

_SENTENCE_TERMINATORS = re.compile(r"[.!?]")


def extract_topics(text: str) -> List[str]:
    """Return the deduplicated, sorted bigram topics of ``text``."""
    tokens = text.split()
    topics = {
        f"{first} {second}"
        for first, second in zip(tokens, tokens[1:])
        if len(first) > MIN_TOKEN_LENGTH and len(second) > MIN_TOKEN_LENGTH
    }
    return sorted(topics)


def extract_sentence_insights(text: str) -> List[Tuple[str, str]]:
    """
    Split ``text`` into sentences and return ``(topic, sentence)`` pairs.

    Only sentences longer than ``MIN_SENTENCE_LENGTH`` characters (after
    trimming) are kept; a sentence's topic is its first word.
    """
    insights = []
    for raw in _SENTENCE_TERMINATORS.split(text):
        sentence = raw.strip()
        if len(sentence) > MIN_SENTENCE_LENGTH:
            insights.append((sentence.split()[0], sentence))
    return insights


def normalize_topic(topic: str) -> str:
    """Lower-case each token and strip surrounding punctuation."""
    tokens = (token.strip(string.punctuation).lower() for token in topic.split())
    return " ".join(token for token in tokens if token)


def lookup_keys(query: str) -> List[str]:
    """
    Normalized keys a query can match learned topics under: its bigram
    topics first, then each of its words.  Order is stable, no duplicates.
    """
    keys = []
    candidates = [normalize_topic(t) for t in extract_topics(query)]
    candidates += [normalize_topic(word) for word in query.split()]
    for key in candidates:
        if key and key not in keys:
            keys.append(key)
    return keys
