"""Text and CSV renderings of bucket balances and transaction diagnostics."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal

from .balances import before_allocation_floor, calculate_total
from .buckets import find_matching_buckets
from .models import (
    UNKNOWN_ACCOUNT,
    Bucket,
    Classifications,
    SavedAccount,
    StartingAllocations,
    Transaction,
)

_CENTS = Decimal("0.01")


def format_money(value: Decimal | None) -> str:
    """Two decimals, half-up; never renders ``-0.00``."""

    q = (value or Decimal("0")).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if q == 0:
        q = Decimal("0.00")
    return f"{q:.2f}"


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def export_balances_csv(buckets: Sequence[Bucket], balances: Mapping[str, Decimal]) -> str:
    """``Bucket Name,Balance`` CSV with one row per bucket plus a ``Total`` row."""

    lines = ["Bucket Name,Balance"]
    for bucket in buckets:
        lines.append(f"{_quote(bucket.name)},{format_money(balances.get(bucket.id))}")
    lines.append(f"{_quote('Total')},{format_money(calculate_total(balances))}")
    return "\n".join(lines) + "\n"


def format_balance_summary(
    buckets: Sequence[Bucket], balances: Mapping[str, Decimal]
) -> str:
    lines = ["Bank Buckets Summary", "===================", ""]
    for bucket in buckets:
        lines.append(f"{bucket.name}: ${format_money(balances.get(bucket.id))}")
    lines.append("")
    lines.append(f"Total: ${format_money(calculate_total(balances))}")
    return "\n".join(lines) + "\n"


DIAGNOSTIC_COLUMNS: tuple[str, ...] = (
    "transaction_id",
    "transaction_date",
    "posted_date",
    "description",
    "user_description",
    "amount",
    "signed_amount",
    "credit_debit",
    "account_number",
    "account_name",
    "account_type",
    "classified_bucket",
    "keyword_buckets",
    "included",
    "before_allocation_date",
    "source",
    "source_file",
)


def diagnostics_csv(
    transactions: Iterable[Transaction],
    *,
    buckets: Sequence[Bucket],
    classifications: Classifications,
    saved_accounts: Sequence[SavedAccount],
    starting_allocations: StartingAllocations,
) -> str:
    """One row per transaction explaining how it feeds (or skips) the balances.

    ``before_allocation_date`` reflects the classified bucket's date floor.
    """

    saved = {sa.account_number: sa for sa in saved_accounts}
    names = {b.id: b.name for b in buckets}

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(DIAGNOSTIC_COLUMNS)
    for tx in transactions:
        account = tx.account_number or UNKNOWN_ACCOUNT
        sa = saved.get(account)
        bucket_id = classifications.get(tx.transaction_id)
        floor_excluded = bool(bucket_id) and before_allocation_floor(
            tx, starting_allocations.get(bucket_id)
        )
        writer.writerow(
            [
                tx.transaction_id,
                tx.transaction_date or "",
                tx.posted_date or "",
                tx.description,
                tx.user_description,
                str(tx.amount),
                str(tx.signed_amount),
                tx.credit_debit or "",
                account,
                (sa.account_name if sa else None) or tx.account_name,
                (sa.account_type if sa else None) or "",
                names.get(bucket_id, bucket_id or ""),
                "; ".join(b.name for b in find_matching_buckets(tx, buckets)),
                "yes" if tx.included else "no",
                "yes" if floor_excluded else "no",
                tx.source,
                tx.source_file or "",
            ]
        )
    return buf.getvalue()


__all__ = [
    "format_money",
    "export_balances_csv",
    "format_balance_summary",
    "DIAGNOSTIC_COLUMNS",
    "diagnostics_csv",
]
