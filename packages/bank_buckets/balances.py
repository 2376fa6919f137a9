"""Bucket balance computation.

Two modes share the same initialisation and allocation date floor:

- keyword mode (:func:`calculate_balances`): every bucket whose keyword
  matches a transaction receives its full signed amount (fan-out);
- classified mode (:func:`calculate_balances_from_classifications`): each
  transaction contributes to at most the one bucket it is assigned to.

Balances are ``Decimal`` keyed by bucket id.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any

from .buckets import find_matching_buckets
from .models import Bucket, Classifications, StartingAllocation, StartingAllocations, Transaction

type Balances = dict[str, Decimal]


def _initial_balances(
    buckets: Iterable[Bucket], starting_allocations: StartingAllocations
) -> Balances:
    balances: Balances = {}
    for bucket in buckets:
        alloc = starting_allocations.get(bucket.id)
        balances[bucket.id] = alloc.amount if alloc is not None else Decimal("0")
    return balances


def before_allocation_floor(
    tx: Transaction, allocation: StartingAllocation | None
) -> bool:
    """True when ``tx`` is strictly before the allocation's anchor date."""

    if allocation is None or allocation.floor is None:
        return False
    return tx.sort_date < allocation.floor


def calculate_balances(
    buckets: Sequence[Bucket],
    transactions: Iterable[Transaction],
    starting_allocations: StartingAllocations,
) -> Balances:
    """Keyword-mode balances.

    Excluded and zero-amount transactions are skipped. A transaction matching
    several buckets is added to each of them, so bucket totals may exceed the
    account's real net flow.
    """

    balances = _initial_balances(buckets, starting_allocations)
    for tx in sorted(transactions, key=lambda t: t.sort_date):
        if not tx.included or tx.amount == 0:
            continue
        signed = tx.signed_amount
        for bucket in find_matching_buckets(tx, buckets):
            if bucket.id not in balances:
                continue
            if before_allocation_floor(tx, starting_allocations.get(bucket.id)):
                continue
            balances[bucket.id] += signed
    return balances


def calculate_balances_from_classifications(
    buckets: Sequence[Bucket],
    transactions: Iterable[Transaction],
    classifications: Classifications,
    starting_allocations: StartingAllocations,
) -> Balances:
    """Classified-mode balances; assignments to unknown buckets are ignored."""

    balances = _initial_balances(buckets, starting_allocations)
    for tx in transactions:
        if not tx.included:
            continue
        bucket_id = classifications.get(tx.transaction_id)
        if not bucket_id or bucket_id not in balances:
            continue
        if before_allocation_floor(tx, starting_allocations.get(bucket_id)):
            continue
        balances[bucket_id] += tx.signed_amount
    return balances


def calculate_total(balances: Mapping[str, Any]) -> Decimal:
    """Sum of balances; values that are not numeric count as zero."""

    total = Decimal("0")
    for value in balances.values():
        try:
            d = value if isinstance(value, Decimal) else Decimal(str(value))
        except (InvalidOperation, ValueError):
            continue
        if d.is_finite():
            total += d
    return total


__all__ = [
    "Balances",
    "before_allocation_floor",
    "calculate_balances",
    "calculate_balances_from_classifications",
    "calculate_total",
]
