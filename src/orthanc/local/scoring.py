"""Text heuristics used by the in-process store.

These are development stand-ins for the service's retrieval pipeline:
word-overlap similarity, regex intent detection and sentence splitting.
"""

from __future__ import annotations

import re

from orthanc.models import QueryType

# Segments this short are greetings and acknowledgements ("Hi", "Ok thanks")
MIN_MEMORY_LENGTH = 10

_SENTENCE_END = re.compile(r"[.!?]+")

# Checked in order; the first match wins
_QUERY_PATTERNS: list[tuple[re.Pattern[str], QueryType]] = [
    (re.compile(r"\b(what do i|list my|show my|what are my)\b"), "graph_list"),
    (
        re.compile(r"\b(do i|am i|did i)\b.*\b(like|love|hate|have|own|know)\b"),
        "graph_relation",
    ),
    (re.compile(r"\b(who is|who are|who's)\b"), "graph_who"),
]


def tokenize(text: str) -> set[str]:
    """Lower-case whitespace tokenization. Punctuation stays attached."""
    return set(text.lower().split())


def similarity(query: str, content: str) -> float:
    """Fraction of query words that also appear in the content.

    Normalized by the query only, so the score is asymmetric. Returns 0.0
    for a query without words.
    """
    query_words = tokenize(query)
    if not query_words:
        return 0.0
    return len(query_words & tokenize(content)) / len(query_words)


def detect_query_type(query: str) -> QueryType:
    """Classify a query's intent: list, relation, who, or plain vector search.

    Examples:
        detect_query_type("Do I like pizza?") -> "graph_relation"
        detect_query_type("What do I like?") -> "graph_list"
        detect_query_type("Who is my friend?") -> "graph_who"
    """
    lower = query.lower()
    for pattern, query_type in _QUERY_PATTERNS:
        if pattern.search(lower):
            return query_type
    return "vector_search"


def split_sentences(text: str) -> list[str]:
    """Split text into trimmed sentences long enough to be worth storing."""
    segments = (segment.strip() for segment in _SENTENCE_END.split(text))
    return [segment for segment in segments if len(segment) > MIN_MEMORY_LENGTH]


def is_memorable_message(role: str, content: str) -> bool:
    """Only substantive user turns become memories."""
    return role == "user" and len(content) > MIN_MEMORY_LENGTH
