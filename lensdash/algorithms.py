"""Text matching and ordering algorithms used by the dashboard.

Implemented algorithms:
- Fuzzy subsequence matching with boundary and adjacency bonuses
- Hierarchical dotted-id comparison
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from functools import cmp_to_key

FIRST_CHAR_BONUS = 10
SEPARATOR_BONUS = 20
CAMEL_CASE_BONUS = 20
ADJACENT_BONUS = 5
LEADING_PENALTY = -5
MAX_LEADING_PENALTY = -15
UNMATCHED_PENALTY = -1

_SEPARATORS = frozenset(" _-./:\\")


@dataclass(frozen=True)
class FuzzyMatch:
    index: int
    text: str
    score: int
    positions: tuple[int, ...]


def fuzzy_score(pattern: str, text: str) -> tuple[int, tuple[int, ...]] | None:
    """Score ``pattern`` as a case-insensitive subsequence of ``text``.

    Returns None when some pattern character cannot be matched in order.
    """
    if not pattern:
        return None

    lowered_pattern = pattern.lower()
    lowered_text = text.lower()
    positions: list[int] = []
    score = 0
    p_idx = 0
    for t_idx, char in enumerate(lowered_text):
        if p_idx >= len(lowered_pattern):
            break
        if char != lowered_pattern[p_idx]:
            continue
        if t_idx == 0:
            score += FIRST_CHAR_BONUS
        else:
            prev = text[t_idx - 1]
            if prev in _SEPARATORS:
                score += SEPARATOR_BONUS
            elif prev.islower() and text[t_idx].isupper():
                score += CAMEL_CASE_BONUS
        if positions and positions[-1] == t_idx - 1:
            score += ADJACENT_BONUS
        positions.append(t_idx)
        p_idx += 1

    if p_idx < len(lowered_pattern):
        return None

    score += max(MAX_LEADING_PENALTY, LEADING_PENALTY * positions[0])
    score += UNMATCHED_PENALTY * (len(text) - len(positions))
    return score, tuple(positions)


def fuzzy_find(pattern: str, texts: Sequence[str]) -> list[FuzzyMatch]:
    """Matches ordered by score descending, ties kept in input order."""
    matches: list[FuzzyMatch] = []
    for idx, text in enumerate(texts):
        result = fuzzy_score(pattern, text)
        if result is None:
            continue
        score, positions = result
        matches.append(FuzzyMatch(index=idx, text=text, score=score, positions=positions))
    matches.sort(key=lambda match: -match.score)
    return matches


def compare_hierarchical_ids(a: str, b: str) -> int:
    """Order dotted ids so that ``x.2`` < ``x.10`` and parents precede children."""
    parts_a = a.split(".")
    parts_b = b.split(".")

    if parts_a[0] != parts_b[0]:
        return -1 if parts_a[0] < parts_b[0] else 1

    for seg_a, seg_b in zip(parts_a[1:], parts_b[1:]):
        if seg_a == seg_b:
            continue
        if seg_a.isdigit() and seg_b.isdigit():
            num_a, num_b = int(seg_a), int(seg_b)
            if num_a != num_b:
                return -1 if num_a < num_b else 1
            continue
        return -1 if seg_a < seg_b else 1

    if len(parts_a) != len(parts_b):
        return -1 if len(parts_a) < len(parts_b) else 1
    return 0


hierarchical_id_key = cmp_to_key(compare_hierarchical_ids)
