"""Adapter for aggregator-export CSV statements (dialect B).

Each column maps onto the ``Transaction`` field of the same (normalized)
name. Light coercion is applied by header substring:

- ``*amount*`` and ``balance`` columns go through :func:`..utils.parse_amount`;
- ``*date*`` columns go through :func:`..utils.parse_date`;
- ``*included*`` becomes a boolean from ``"true"``/``"1"``; an empty cell
  keeps the default ``True``.

Unknown columns are ignored. Rows lacking an amount or a transaction date are
dropped.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import fields
from decimal import Decimal
from typing import Any

from ...errors import ParseError
from ...logging_setup import get_logger
from ...models import UNKNOWN_ACCOUNT, Transaction
from ..utils import generate_transaction_id, parse_amount, parse_date

REQUIRED_HEADERS: tuple[str, ...] = (
    "amount",
    "transaction_date",
    "account_number",
    "account_name",
)

_TX_FIELDS = {f.name for f in fields(Transaction)}

logger = get_logger("bank_buckets.ingest.aggregator_export_csv")


def validate_headers(headers: Sequence[str]) -> None:
    """Raise ``ParseError`` naming every required header that is missing."""

    missing = [req for req in REQUIRED_HEADERS if not any(req in h for h in headers)]
    if missing:
        raise ParseError(f"Missing required headers: {', '.join(missing)}")


def _coerce(header: str, raw: str) -> Any:
    value = raw.strip()
    if "amount" in header or header == "balance":
        return parse_amount(value)
    if "date" in header:
        return parse_date(value)
    if "included" in header:
        if not value:
            return None
        return value.lower() == "true" or value == "1"
    return value


def to_transactions(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    filename: str | None = None,
) -> list[Transaction]:
    validate_headers(headers)

    out: list[Transaction] = []
    skipped = 0
    for values in rows:
        record: dict[str, Any] = {}
        for idx, header in enumerate(headers):
            raw = values[idx] if idx < len(values) else ""
            record[header] = _coerce(header, raw)

        amount: Decimal | None = record.get("amount")
        tx_date = record.get("transaction_date")
        if amount is None or not tx_date:
            skipped += 1
            continue

        kwargs = {
            k: v
            for k, v in record.items()
            if k in _TX_FIELDS and v is not None and v != ""
        }
        kwargs["amount"] = amount
        kwargs["transaction_date"] = tx_date
        kwargs.setdefault("description", "")
        kwargs.setdefault("account_number", UNKNOWN_ACCOUNT)
        kwargs["source"] = "csv"
        kwargs["source_file"] = filename
        if not kwargs.get("transaction_id"):
            kwargs["transaction_id"] = generate_transaction_id(
                tx_date,
                kwargs["description"] or kwargs.get("user_description", ""),
                amount,
                kwargs["account_number"],
            )
        out.append(Transaction(**kwargs))

    if skipped:
        logger.debug("aggregator CSV: skipped %d rows without amount/date", skipped)
    logger.info("Parsed %d transactions from aggregator-export CSV", len(out))
    return out


__all__ = ["REQUIRED_HEADERS", "validate_headers", "to_transactions"]
