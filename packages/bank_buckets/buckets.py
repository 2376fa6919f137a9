"""Bucket matching, keyword auto-assignment and bucket suggestions.

Buckets are scoped to a single account: a keyword only ever matches
transactions of the bucket's own account. Matching is a case-insensitive
substring test against :attr:`Transaction.match_description`.
"""

from __future__ import annotations

import re
import time
import uuid
from collections.abc import Iterable, MutableMapping, Sequence
from dataclasses import dataclass, field

from .logging_setup import get_logger
from .models import (
    UNKNOWN_ACCOUNT,
    Bucket,
    BucketSuggestion,
    Classifications,
    Transaction,
)

logger = get_logger("bank_buckets.buckets")


def new_bucket_id() -> str:
    return f"bucket_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _account_of(tx: Transaction) -> str:
    return tx.account_number or UNKNOWN_ACCOUNT


def keyword_matches(bucket: Bucket, text: str) -> bool:
    """True when any non-empty keyword of ``bucket`` occurs in ``text``."""

    haystack = text.lower()
    return any(k.strip() and k.strip().lower() in haystack for k in bucket.keywords)


def find_matching_buckets(tx: Transaction, buckets: Iterable[Bucket]) -> list[Bucket]:
    """Return every bucket of ``tx``'s account with a keyword in its description."""

    text = tx.match_description
    if not text:
        return []
    account = _account_of(tx)
    return [b for b in buckets if b.account_number == account and keyword_matches(b, text)]


def unclassified_transactions(
    transactions: Iterable[Transaction], classifications: Classifications
) -> list[Transaction]:
    return [tx for tx in transactions if not classifications.get(tx.transaction_id)]


def auto_assign_by_keywords(
    transactions: Iterable[Transaction],
    buckets: Sequence[Bucket],
    classifications: MutableMapping[str, str],
) -> int:
    """Classify still-unclassified transactions by bucket keywords.

    The first bucket (in ``buckets`` order) of the transaction's account whose
    keyword matches wins. Existing assignments are never overwritten.
    ``classifications`` is updated in place.

    Returns
    -------
    int
        Number of new assignments.
    """

    assigned = 0
    for tx in transactions:
        if classifications.get(tx.transaction_id):
            continue
        match = next(iter(find_matching_buckets(tx, buckets)), None)
        if match is not None:
            classifications[tx.transaction_id] = match.id
            assigned += 1
    if assigned:
        logger.info("Auto-assigned %d transactions by keyword", assigned)
    return assigned


def remove_bucket_classifications(
    classifications: MutableMapping[str, str], bucket_id: str
) -> int:
    """Drop every assignment pointing at ``bucket_id``; return how many."""

    doomed = [tx_id for tx_id, b_id in classifications.items() if b_id == bucket_id]
    for tx_id in doomed:
        del classifications[tx_id]
    return len(doomed)


# ---------------------------------------------------------------------------
# Suggestions
# ---------------------------------------------------------------------------

_PATTERN_RES = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"transfer\s+to\s+(\w+)",
        r"transfer\s+from\s+(\w+)",
        r"(\w+)\s+fund",
        r"(\w+)\s+buffer",
        r"(\w+)\s+savings",
        r"(\w+)\s+account",
        r"loan\s+(\w+)",
        r"(\w+)\s+repayment",
        r"(\w+)\s+payment",
        r"(\w+)\s+deposit",
    )
)
_GENERIC_WORDS = frozenset({"transfer", "payment", "deposit", "withdrawal"})


def extract_patterns(text: str) -> list[str]:
    """Distinct candidate bucket stems found in a description, in pattern order."""

    lower = text.lower()
    patterns = list(
        dict.fromkeys(m.group(1) for r in _PATTERN_RES if (m := r.search(lower)) and m.group(1))
    )
    if not patterns:
        significant = [w for w in lower.split() if len(w) > 3 and w not in _GENERIC_WORDS]
        if significant:
            patterns.append(significant[0])
    return patterns


def bucket_name_for(pattern: str) -> str:
    return f"{pattern[:1].upper()}{pattern[1:]} Fund"


@dataclass(slots=True)
class _PatternStats:
    keywords: dict[str, None] = field(default_factory=dict)
    count: int = 0
    examples: list[str] = field(default_factory=list)


def suggest_buckets(
    transactions: Iterable[Transaction],
    *,
    min_occurrences: int = 2,
    max_keywords: int = 10,
    max_examples: int = 3,
) -> list[BucketSuggestion]:
    """Propose buckets from recurring description patterns.

    Parameters
    ----------
    transactions:
        Records to analyse (typically one account's transactions).
    min_occurrences:
        A pattern must occur at least this many times to be suggested.
    max_keywords:
        Cap on keywords per suggestion; the pattern itself always comes first.
    max_examples:
        Number of example descriptions kept per suggestion.

    Returns
    -------
    list[BucketSuggestion]
        Sorted by match count, most frequent first.
    """

    stats: dict[str, _PatternStats] = {}
    for tx in transactions:
        text = tx.match_description.lower()
        if not text:
            continue
        for pattern in extract_patterns(text):
            entry = stats.setdefault(pattern, _PatternStats())
            entry.count += 1
            entry.keywords[pattern] = None
            for word in text.split():
                if len(word) > 3:
                    entry.keywords[word] = None
            if len(entry.examples) < max_examples:
                entry.examples.append(tx.match_description)

    suggestions = [
        BucketSuggestion(
            name=bucket_name_for(pattern),
            keywords=tuple(list(entry.keywords)[:max_keywords]),
            match_count=entry.count,
            examples=tuple(entry.examples),
        )
        for pattern, entry in stats.items()
        if entry.count >= min_occurrences
    ]
    suggestions.sort(key=lambda s: s.match_count, reverse=True)
    return suggestions


__all__ = [
    "new_bucket_id",
    "keyword_matches",
    "find_matching_buckets",
    "unclassified_transactions",
    "auto_assign_by_keywords",
    "remove_bucket_classifications",
    "extract_patterns",
    "bucket_name_for",
    "suggest_buckets",
]
