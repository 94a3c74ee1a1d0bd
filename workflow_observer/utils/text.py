"""Lexical helpers used for relevance ranking and duplicate detection."""

from __future__ import annotations

import re
from typing import Iterable, Set

_WORD_PATTERN = re.compile(r"\w+")


def normalize_text(text: str) -> str:
    return " ".join(_WORD_PATTERN.findall((text or "").lower()))


def word_set(text: str) -> Set[str]:
    return set(_WORD_PATTERN.findall((text or "").lower()))


def overlap_score(query: str, content: str) -> float:
    """Share of query words present in content, boosted when the query appears verbatim."""

    query_words = word_set(query)
    if not query_words:
        return 0.0
    content_words = word_set(content)
    score = len(query_words & content_words) / len(query_words)
    normalized_query = normalize_text(query)
    if normalized_query and normalized_query in normalize_text(content):
        score += 0.3
    return min(score, 1.0)


def jaccard(left: str, right: str) -> float:
    left_words = word_set(left)
    right_words = word_set(right)
    if not left_words or not right_words:
        return 0.0
    return len(left_words & right_words) / len(left_words | right_words)


def is_near_duplicate(candidate: str, existing: Iterable[str], threshold: float) -> bool:
    """Case-insensitive exact or containment match, or word overlap at or above *threshold*."""

    normalized = normalize_text(candidate)
    if not normalized:
        return False
    for previous in existing:
        other = normalize_text(previous)
        if not other:
            continue
        padded, padded_other = f" {normalized} ", f" {other} "
        if padded in padded_other or padded_other in padded:
            return True
        if jaccard(normalized, other) >= threshold:
            return True
    return False


def truncate_to_units(text: str, units: int, *, chars_per_unit: int = 4) -> str:
    """Trim *text* to an approximate token budget, cutting at a line boundary when possible."""

    limit = max(units, 0) * chars_per_unit
    if len(text) <= limit:
        return text
    if limit == 0:
        return ""
    clipped = text[:limit]
    newline = clipped.rfind("\n")
    if newline > 0:
        return clipped[:newline]
    return clipped


def estimate_units(text: str, *, chars_per_unit: int = 4) -> int:
    return -(-len(text) // chars_per_unit)


__all__ = [
    "estimate_units",
    "is_near_duplicate",
    "jaccard",
    "normalize_text",
    "overlap_score",
    "truncate_to_units",
    "word_set",
]
