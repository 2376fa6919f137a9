"""Duplicate detection and merge-on-import for statement transactions.

Public surface:
- ``are_duplicates``: decide whether two records describe the same real-world
  event (reference token, then amount/date/account/description heuristics).
- ``merge_transactions``: fold a freshly parsed batch into the existing set,
  enriching matched records and appending the rest, with merge statistics.

Both functions are pure: caller lists and records are never mutated.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from decimal import Decimal

from .logging_setup import get_logger
from .models import UNKNOWN_ACCOUNT, MergeResult, MergeStats, Transaction

logger = get_logger("bank_buckets.duplicates")

_REF_RE = re.compile(r"(?:NET|APP|Ref)[#.]\s*(\d+)", re.IGNORECASE)
_NON_DIGIT_RE = re.compile(r"\D")

REFERENCE_AMOUNT_TOLERANCE = Decimal("0.05")
AMOUNT_TOLERANCE = Decimal("0.01")
MAX_DATE_GAP_DAYS = 1
MIN_SIMILARITY = 0.5


def extract_reference_id(description: str | None) -> str | None:
    """Return the normalized ``NET#``/``APP#``/``Ref#`` token, if any."""

    if not description:
        return None
    m = _REF_RE.search(description)
    if not m:
        return None
    return re.sub(r"\s+", "", m.group(0).upper())


def description_similarity(a: str, b: str) -> float:
    """Word-overlap similarity in ``[0, 1]``.

    Words of three characters or more are compared by mutual containment.
    The score is the larger of the two directional match counts over the
    longer word list, so ``similarity(a, b) == similarity(b, a)``.
    """

    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    words_a = [w for w in a.split() if len(w) > 2]
    words_b = [w for w in b.split() if len(w) > 2]
    if not words_a or not words_b:
        return 0.6 if (a in b or b in a) else 0.0

    def _hits(xs: list[str], ys: list[str]) -> int:
        return sum(1 for x in xs if any(x in y or y in x for y in ys))

    hits = max(_hits(words_a, words_b), _hits(words_b, words_a))
    return hits / max(len(words_a), len(words_b))


def _accounts_compatible(a: str, b: str) -> bool:
    acc_a = (a or "").strip()
    acc_b = (b or "").strip()
    if not acc_a or not acc_b:
        return True
    digits_a = _NON_DIGIT_RE.sub("", acc_a)
    digits_b = _NON_DIGIT_RE.sub("", acc_b)
    if len(digits_a) >= 3 and len(digits_b) >= 3:
        # Masked exports keep only the trailing digits
        return digits_a.endswith(digits_b) or digits_b.endswith(digits_a)
    return digits_a == digits_b or acc_a == acc_b


def are_duplicates(a: Transaction, b: Transaction) -> bool:
    """Return ``True`` when ``a`` and ``b`` look like the same transaction.

    Rules, first decisive one wins:

    1. equal reference tokens and amounts within 0.05 -> duplicate;
    2. amounts (absolute) differ by more than 0.01 -> distinct;
    3. effective dates more than one day apart -> distinct;
    4. both accounts present but incompatible -> distinct;
    5. one description contains the other -> duplicate, word-overlap
       similarity below 0.5 -> distinct;
    6. otherwise duplicate.
    """

    amount_gap = abs(abs(a.amount) - abs(b.amount))

    ref_a = extract_reference_id(a.primary_description)
    ref_b = extract_reference_id(b.primary_description)
    if ref_a and ref_a == ref_b and amount_gap < REFERENCE_AMOUNT_TOLERANCE:
        return True

    if amount_gap > AMOUNT_TOLERANCE:
        return False

    if abs((a.sort_date - b.sort_date).days) > MAX_DATE_GAP_DAYS:
        return False

    if not _accounts_compatible(a.account_number, b.account_number):
        return False

    desc_a = a.primary_description.lower().strip()
    desc_b = b.primary_description.lower().strip()
    if desc_a and desc_b:
        if desc_a in desc_b or desc_b in desc_a:
            return True
        if description_similarity(desc_a, desc_b) < MIN_SIMILARITY:
            return False

    return True


def _is_masked_or_unknown(account: str | None) -> bool:
    return not account or account == UNKNOWN_ACCOUNT or "x" in account.lower()


def _enrich(target: Transaction, incoming: Transaction) -> None:
    new_desc = incoming.description or ""
    old_desc = target.description or ""
    if len(new_desc) > len(old_desc):
        target.description = new_desc
        if not target.user_description or target.user_description == old_desc:
            target.user_description = new_desc

    if _is_masked_or_unknown(target.account_number) and not _is_masked_or_unknown(
        incoming.account_number
    ):
        target.account_number = incoming.account_number


def merge_transactions(
    existing: Sequence[Transaction], incoming: Sequence[Transaction]
) -> MergeResult:
    """Merge ``incoming`` into ``existing``; first match wins.

    Each incoming record is compared against every record merged so far
    (existing ones and previously appended incoming ones), which makes the
    merge O(len(existing) x len(incoming)).
    """

    merged = [tx.copy() for tx in existing]
    unique = 0
    duplicates = 0

    for new_tx in incoming:
        match = next((m for m in merged if are_duplicates(new_tx, m)), None)
        if match is not None:
            duplicates += 1
            _enrich(match, new_tx)
        else:
            merged.append(new_tx.copy())
            unique += 1

    stats = MergeStats(
        existing=len(existing),
        new=len(incoming),
        unique=unique,
        duplicates=duplicates,
        total=len(merged),
    )
    logger.info(
        "Merged %d incoming into %d existing: %d unique, %d duplicates",
        stats.new,
        stats.existing,
        stats.unique,
        stats.duplicates,
    )
    return MergeResult(merged=merged, stats=stats)


__all__ = [
    "extract_reference_id",
    "description_similarity",
    "are_duplicates",
    "merge_transactions",
]
