"""Edit-distance similarity between short strings.

Used for fuzzy merchant comparisons and for mapping import column headers to
known transaction fields.
"""

from __future__ import annotations

from collections.abc import Iterable


def edit_distance(a: str, b: str) -> int:
    """Case-insensitive Levenshtein distance (unit insert/delete/substitute costs)."""

    a = a.lower()
    b = b.lower()
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    # Two-row dynamic programming over the shorter string.
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(
                    previous[j] + 1,  # deletion
                    current[j - 1] + 1,  # insertion
                    previous[j - 1] + cost,  # substitution
                )
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Return ``(max_len - distance) / max_len`` in ``[0, 1]``; two empties score 1.0."""

    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - edit_distance(a, b)) / longest


def best_match(value: str, candidates: Iterable[str], *, threshold: float = 0.6) -> str | None:
    """Return the candidate most similar to ``value`` or ``None`` below ``threshold``.

    A candidate contained in ``value`` (or vice versa, ignoring case) counts as
    a full match, so ``"Transaction Date"`` maps to ``"date"``. Ties keep the
    earliest candidate.
    """

    needle = value.strip().lower()
    if not needle:
        return None

    best: str | None = None
    best_score = -1.0
    for candidate in candidates:
        c = candidate.strip().lower()
        if not c:
            continue
        score = 1.0 if (c in needle or needle in c) else similarity(needle, c)
        if score > best_score:
            best, best_score = candidate, score
    if best is None or best_score < threshold:
        return None
    return best


__all__ = ["best_match", "edit_distance", "similarity"]
