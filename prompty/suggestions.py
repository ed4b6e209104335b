"""
"Did you mean" suggestions for unknown variable paths.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

MAX_SUGGESTIONS = 3
MAX_EDIT_DISTANCE = 2


def levenshtein(a: str, b: str) -> int:
    """Edit distance between two strings."""
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def find_similar(
    target: str,
    candidates: Sequence[str],
    max_results: int = MAX_SUGGESTIONS,
    max_distance: int = MAX_EDIT_DISTANCE,
) -> List[str]:
    """
    Candidates that look like ``target``.

    A candidate matches when it is a case-insensitive substring of
    ``target`` or their edit distance is at most ``max_distance``. Longer
    names that merely contain ``target`` are not suggested.
    Results are ordered by distance, then name.
    """
    lowered = target.lower()
    scored: List[Tuple[int, str]] = []
    for candidate in dict.fromkeys(candidates):
        if not candidate or candidate == target:
            continue
        other = candidate.lower()
        distance = levenshtein(lowered, other)
        if distance <= max_distance or other in lowered:
            scored.append((distance, candidate))
    scored.sort()
    return [candidate for _, candidate in scored[:max_results]]


__all__ = ["levenshtein", "find_similar", "MAX_SUGGESTIONS", "MAX_EDIT_DISTANCE"]
