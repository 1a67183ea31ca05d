from dataclasses import dataclass
from typing import Iterable, Optional

from ..config import FUZZY_MATCH_THRESHOLD
from .normalize import normalize_answer


@dataclass(frozen=True)
class MatchResult:
    similarity: float
    matched_answer: Optional[str]
    matches: bool


def edit_distance(a: str, b: str) -> int:
    # Single-row Levenshtein; insert/delete/substitute all cost 1
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j - 1], previous[j], current[j - 1]))
        previous = current
    return previous[-1]


def similarity_ratio(a: str, b: str) -> float:
    na = normalize_answer(a)
    nb = normalize_answer(b)
    if na == nb and na:
        return 1.0
    if not na or not nb:
        return 0.0
    distance = edit_distance(na, nb)
    return 1 - distance / max(len(na), len(nb))


def best_match(
    candidate: str,
    acceptable: Iterable[str],
    threshold: float = FUZZY_MATCH_THRESHOLD,
) -> MatchResult:
    """Highest similarity of ``candidate`` across the acceptable answers.

    Blank entries are ignored. Raises ``ValueError`` when nothing is left
    to compare against.
    """
    answers = [a for a in acceptable if a and a.strip()]
    if not answers:
        raise ValueError("at least one acceptable answer is required")

    best_similarity = 0.0
    best_answer = None
    for answer in answers:
        similarity = similarity_ratio(candidate, answer)
        if similarity > best_similarity:
            best_similarity = similarity
            best_answer = answer

    matches = best_similarity >= threshold
    return MatchResult(
        similarity=best_similarity,
        matched_answer=best_answer if matches else None,
        matches=matches,
    )
