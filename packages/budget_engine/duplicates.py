"""Probable-duplicate detection over the raw transaction set.

Detection is heuristic and rule based. Each pair is scored by independent
signals; some signals only add a *reason*, others also raise a provisional
duplicate flag:

==============================  ========  ===========
signal                          reason    sets flag
==============================  ========  ===========
amount within 0.01              yes       yes
description similarity >= 0.75  yes       yes
dates within 3 days             yes       when equal
same category and type          yes       no
same issuer                     yes       no
==============================  ========  ===========

A candidate is accepted when the flag is set and at least two reasons hold.

Resolution (confirming a duplicate or dismissing a candidate) is recorded on
the transactions themselves by :func:`mark_as_duplicate` and
:func:`ignore_duplicate`; both return new lists and are idempotent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal

from .logging_setup import get_logger
from .models import DuplicateCandidate, DuplicateGroup, Transaction
from .similarity import calculate_similarity

_logger = get_logger("budget_engine.duplicates")

AMOUNT_TOLERANCE = Decimal("0.01")
DESCRIPTION_SIMILARITY_THRESHOLD = 0.75
DATE_PROXIMITY_DAYS = 3
MIN_REASONS = 2

DEFAULT_IGNORE_REASON = "Reviewed: not a duplicate"


@dataclass(frozen=True, slots=True)
class _Signal:
    reason: str
    flags: bool


def _amount_signal(t: Transaction, o: Transaction, _sim: float) -> _Signal | None:
    if abs(t.amount - o.amount) < AMOUNT_TOLERANCE:
        return _Signal("same amount", flags=True)
    return None


def _description_signal(t: Transaction, o: Transaction, sim: float) -> _Signal | None:
    if sim >= DESCRIPTION_SIMILARITY_THRESHOLD:
        return _Signal(f"similar description ({sim * 100:.0f}%)", flags=True)
    return None


def _date_signal(t: Transaction, o: Transaction, _sim: float) -> _Signal | None:
    days = abs((t.date - o.date).days)
    if days <= DATE_PROXIMITY_DAYS:
        return _Signal(f"close dates ({days} day{'' if days == 1 else 's'})", flags=days == 0)
    return None


def _category_signal(t: Transaction, o: Transaction, _sim: float) -> _Signal | None:
    if t.category == o.category and t.type == o.type:
        return _Signal("same category and type", flags=False)
    return None


def _issuer_signal(t: Transaction, o: Transaction, _sim: float) -> _Signal | None:
    if t.issuer and o.issuer and t.issuer == o.issuer:
        return _Signal("same issuer", flags=False)
    return None


# Order defines the order of reasons in the output.
SIGNALS: tuple[Callable[[Transaction, Transaction, float], _Signal | None], ...] = (
    _amount_signal,
    _description_signal,
    _date_signal,
    _category_signal,
    _issuer_signal,
)


def score_pair(seed: Transaction, other: Transaction) -> DuplicateCandidate | None:
    """Return ``other`` as a duplicate candidate of ``seed`` or ``None``."""

    sim = calculate_similarity(seed.description, other.description)
    signals = [s for s in (fn(seed, other, sim) for fn in SIGNALS) if s is not None]
    if any(s.flags for s in signals) and len(signals) >= MIN_REASONS:
        return DuplicateCandidate(
            transaction=other,
            similarity=sim,
            reasons=tuple(s.reason for s in signals),
        )
    return None


def find_duplicate_groups(transactions: Iterable[Transaction]) -> list[DuplicateGroup]:
    """Group probable duplicates.

    Transactions already flagged ``is_duplicate`` and projected occurrences
    are ignored. The rest are walked newest first; each unvisited transaction
    is compared with every older unvisited one. Once a group forms, its
    original and all its candidates are visited and take no further part.
    """

    ordered = sorted(
        (t for t in transactions if not t.is_duplicate and not t.is_projected),
        key=lambda t: t.date,
        reverse=True,
    )

    visited: set[str] = set()
    groups: list[DuplicateGroup] = []
    for pos, seed in enumerate(ordered):
        if seed.id in visited:
            continue
        candidates = [
            c
            for other in ordered[pos + 1 :]
            if other.id not in visited and (c := score_pair(seed, other)) is not None
        ]
        if not candidates:
            continue
        candidates.sort(key=lambda c: c.similarity, reverse=True)
        groups.append(DuplicateGroup(original=seed, duplicates=tuple(candidates)))
        visited.add(seed.id)
        visited.update(c.transaction.id for c in candidates)

    _logger.debug(
        "duplicates:scan transactions=%d groups=%d candidates=%d",
        len(ordered),
        len(groups),
        sum(len(g.duplicates) for g in groups),
    )
    return groups


# ---------------------------------------------------------------------------
# Manual resolution
# ---------------------------------------------------------------------------


def _require_ids(transactions: Sequence[Transaction], *ids: str) -> None:
    known = {t.id for t in transactions}
    missing = [i for i in ids if i not in known]
    if missing:
        raise KeyError(f"Unknown transaction id(s): {', '.join(missing)}")


def mark_as_duplicate(
    transactions: Iterable[Transaction], transaction_id: str, original_id: str
) -> list[Transaction]:
    """Link ``transaction_id`` to ``original_id`` as a confirmed duplicate."""

    items = list(transactions)
    if transaction_id == original_id:
        raise ValueError("A transaction cannot be a duplicate of itself")
    _require_ids(items, transaction_id, original_id)
    return [
        t.model_copy(update={"is_duplicate": True, "duplicate_of": original_id})
        if t.id == transaction_id
        else t
        for t in items
    ]


def ignore_duplicate(
    transactions: Iterable[Transaction],
    transaction_id: str,
    reason: str = DEFAULT_IGNORE_REASON,
) -> list[Transaction]:
    """Record that ``transaction_id`` was reviewed and is not a duplicate."""

    items = list(transactions)
    _require_ids(items, transaction_id)
    return [
        t.model_copy(update={"ignored_reason": reason}) if t.id == transaction_id else t
        for t in items
    ]


def marked_duplicates(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.is_duplicate]


def ignored_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.ignored_reason]


__all__ = [
    "SIGNALS",
    "find_duplicate_groups",
    "ignore_duplicate",
    "ignored_transactions",
    "mark_as_duplicate",
    "marked_duplicates",
    "score_pair",
]
