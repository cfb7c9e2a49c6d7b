"""Name comparison helpers for duplicate and near-duplicate detection.

Character names are compared case-insensitively with whitespace
collapsed. Near misses ("Johnson" vs "Jonson") are scored with a normalized
Levenshtein similarity in the range 0.0 to 1.0.
"""

import logging

logger = logging.getLogger(__name__)

# Last names scoring above this (and below an exact match) are reported as similar
SIMILAR_NAME_THRESHOLD = 0.8


def normalize_name(name: str | None) -> str:
    """Lowercase *name* and collapse runs of whitespace."""
    if not name:
        return ""
    return " ".join(name.split()).lower()


def full_name_key(first_name: str | None, last_name: str | None) -> str:
    """Build the case-insensitive key used to detect duplicate characters."""
    return normalize_name(f"{first_name or ''} {last_name or ''}")


def levenshtein_distance(a: str, b: str) -> int:
    """Return the edit distance between two strings.

    Uses the two-row dynamic programming formulation, O(len(a) * len(b)) time.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(a: str | None, b: str | None) -> float:
    """Score how alike two names are, case-insensitively.

    Returns:
        1.0 for identical names, 0.0 for completely different ones.
        Two empty names count as identical.
    """
    left = normalize_name(a)
    right = normalize_name(b)
    longest = max(len(left), len(right))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(left, right) / longest


def is_similar_name(
    first_a: str | None,
    last_a: str | None,
    first_b: str | None,
    last_b: str | None,
    threshold: float = SIMILAR_NAME_THRESHOLD,
) -> bool:
    """Check whether two characters look like spelling variants of each other.

    The first names must match exactly (ignoring case) and the last names
    must be close but not identical.
    """
    if normalize_name(first_a) != normalize_name(first_b):
        return False
    score = name_similarity(last_a, last_b)
    similar = threshold < score < 1.0
    if similar:
        logger.debug(
            "Similar names: %s %s ~ %s %s (%.2f)", first_a, last_a, first_b, last_b, score
        )
    return similar
