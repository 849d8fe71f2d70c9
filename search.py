"""Phrase-proximity keyword ranking over catalog candidates.

Every query token must appear in a candidate's keywords. Each match adds to the
score, and matches that are far apart from the previous matched word cost
points, so phrases in their original order rank above scattered words. Only
the candidates tied for the best score are returned.
"""
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from keywords import normalize

T = TypeVar("T")

SEED_SCORE = -2
MATCH_POINTS = 10
RESCALE_NUM = 20
RESCALE_DEN = 16


def _trunc_div(a: int, b: int) -> int:
    """Integer division truncating toward zero."""
    q = abs(a) // b
    return q if a >= 0 else -q


def _default_keywords(candidate) -> str:
    return candidate.keywords or ""


def score(query: Sequence[str], keywords: str) -> Optional[int]:
    """Score one keywords string against `query`; None if any token is missing."""
    words = normalize(keywords)

    h = SEED_SCORE
    prev = -1
    for token in query:
        try:
            i = words.index(token)
        except ValueError:
            return None

        if prev >= 0 and i - prev > 1:
            h -= (i - prev) + 1

        h += MATCH_POINTS
        h = _trunc_div(h * RESCALE_NUM, RESCALE_DEN)
        prev = i

    return h


def rank(
    query: Sequence[str],
    candidates: Sequence[T],
    keywords_of: Callable[[T], str] = _default_keywords,
) -> List[Tuple[int, T]]:
    """(score, candidate) for every candidate that matches all tokens, in input order."""
    ranked = []
    for candidate in candidates:
        h = score(query, keywords_of(candidate))
        if h is not None:
            ranked.append((h, candidate))
    return ranked


def keyword_match(
    query: Sequence[str],
    candidates: Sequence[T],
    keywords_of: Callable[[T], str] = _default_keywords,
) -> List[T]:
    """Return the candidates tied for the highest score.

    An empty query matches everything and returns `candidates` unchanged.
    """
    if not query:
        return list(candidates)

    ranked = rank(query, candidates, keywords_of)
    if not ranked:
        return []

    highest = max(h for h, _ in ranked)
    return [candidate for h, candidate in ranked if h == highest]
