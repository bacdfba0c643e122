"""String similarity used for header matching and ID hints."""

from __future__ import annotations

import re
from collections.abc import Iterable

from rapidfuzz.distance import Levenshtein

EXACT_SCORE = 1.0
CONTAINMENT_SCORE = 0.8


def canonical_text(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "", value.lower())


def similarity(a: str, b: str, *, containment_score: float = CONTAINMENT_SCORE) -> float:
    left = canonical_text(a)
    right = canonical_text(b)
    if left == right:
        return EXACT_SCORE
    # an empty side is a substring of the other and scores as containment
    if left in right or right in left:
        return containment_score
    distance = Levenshtein.distance(left, right)
    return 1.0 - distance / max(len(left), len(right))


def best_match(
    value: str,
    candidates: Iterable[str],
    threshold: float,
) -> tuple[str | None, float]:
    """Return the highest scoring candidate strictly above ``threshold``.

    Earlier candidates win ties.
    """
    best: str | None = None
    best_score = 0.0
    for candidate in candidates:
        score = similarity(value, candidate)
        if score > best_score:
            best = candidate
            best_score = score
    if best is None or best_score <= threshold:
        return None, best_score
    return best, best_score
