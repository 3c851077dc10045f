"""String similarity primitives used by duplicate detection and search.

Inputs are short, human-entered descriptions ("Uber Trip", "Padaria São
João"). Edit distance comes from ``rapidfuzz`` with unit costs for
insertion, deletion and substitution.

Scoring conventions:
- ``calculate_similarity`` returns a value in ``[0, 1]``.
- Two strings that are equal after normalization score 1, including the case
  where both normalize to the empty string.
- Exactly one empty normalized string scores 0.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass

from rapidfuzz.distance import Levenshtein


def normalize_text(text: str) -> str:
    """Case-fold, strip diacritics, and trim ``text``."""

    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.casefold().strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Return the edit distance between ``a`` and ``b`` (unit costs)."""

    return int(Levenshtein.distance(a, b))


def calculate_similarity(a: str, b: str) -> float:
    na = normalize_text(a)
    nb = normalize_text(b)
    if na == nb:
        return 1.0
    if not na or not nb:
        return 0.0
    distance = levenshtein_distance(na, nb)
    return 1.0 - distance / max(len(na), len(nb))


def fuzzy_match(target: str, query: str, threshold: float = 0.6) -> bool:
    """Return whether ``query`` approximately occurs in ``target``.

    A literal substring match (after normalization) always matches. Otherwise
    every whitespace-separated word of the query must score at least
    ``threshold`` against some word of the target.
    """

    nt = normalize_text(target)
    nq = normalize_text(query)
    if nq in nt:
        return True

    target_words = nt.split()
    return all(
        any(calculate_similarity(tw, qw) >= threshold for tw in target_words)
        for qw in nq.split()
    )


@dataclass(frozen=True, slots=True)
class SimilarString:
    text: str
    similarity: float


def find_similar_strings(
    target: str, candidates: Iterable[str], threshold: float = 0.75
) -> list[SimilarString]:
    """Return candidates scoring at least ``threshold``, most similar first."""

    scored = [SimilarString(c, calculate_similarity(target, c)) for c in candidates]
    return sorted(
        (s for s in scored if s.similarity >= threshold),
        key=lambda s: s.similarity,
        reverse=True,
    )


__all__ = [
    "SimilarString",
    "calculate_similarity",
    "find_similar_strings",
    "fuzzy_match",
    "levenshtein_distance",
    "normalize_text",
]
