"""Adapter for bank-export CSV statements (dialect A).

Contract
--------
- Header row carries some variant of ``effective_date, entered_date,
  transaction_description, amount, balance`` (matched by substring after
  header normalization).
- The file does not carry an account number. It is taken from the statement
  filename (``Statement_<8-10 digits>_...``), else ``"unknown"``.
- Amounts are signed in the file (``-$50.00`` is money out); ``credit_debit``
  is derived from the sign.

Rows whose amount or date cannot be parsed are skipped silently.
"""

from __future__ import annotations

from collections.abc import Sequence

from ...logging_setup import get_logger
from ...models import UNKNOWN_ACCOUNT, Transaction
from ..utils import (
    default_currency,
    default_provider,
    extract_account_number_from_filename,
    extract_merchant_name,
    generate_transaction_id,
    infer_transaction_type,
    parse_amount,
    parse_date,
)

EXPECTED_HEADERS: tuple[str, ...] = (
    "effective_date",
    "entered_date",
    "transaction_description",
    "amount",
    "balance",
)

logger = get_logger("bank_buckets.ingest.bank_export_csv")


def _find(headers: Sequence[str], predicate) -> int | None:
    for i, h in enumerate(headers):
        if predicate(h):
            return i
    return None


def _cell(values: Sequence[str], idx: int | None) -> str:
    if idx is None or idx >= len(values):
        return ""
    return values[idx]


def to_transactions(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    *,
    filename: str | None = None,
) -> list[Transaction]:
    """Map tokenized data rows to ``Transaction`` records.

    Parameters
    ----------
    headers:
        Normalized header names (see :func:`..utils.normalize_header`).
    rows:
        Tokenized data rows, header excluded.
    filename:
        Original file name; the only source of the account number.
    """

    account_number = extract_account_number_from_filename(filename) or UNKNOWN_ACCOUNT
    account_name = f"Account {account_number}"
    currency = default_currency()
    provider = default_provider()

    entered_idx = _find(headers, lambda h: "entered" in h)
    effective_idx = _find(headers, lambda h: "effective" in h)
    desc_idx = _find(headers, lambda h: "description" in h)
    amount_idx = _find(headers, lambda h: h == "amount")
    balance_idx = _find(headers, lambda h: h == "balance")

    out: list[Transaction] = []
    skipped = 0
    for values in rows:
        date_str = _cell(values, entered_idx) or _cell(values, effective_idx)
        description = _cell(values, desc_idx).strip()
        amount = parse_amount(_cell(values, amount_idx))
        balance = parse_amount(_cell(values, balance_idx))
        tx_date = parse_date(date_str)

        if amount is None or not tx_date:
            skipped += 1
            continue

        out.append(
            Transaction(
                transaction_id=generate_transaction_id(
                    tx_date, description, amount, account_number
                ),
                description=description,
                user_description=description,
                amount=amount,
                currency=currency,
                transaction_date=tx_date,
                posted_date=tx_date,
                account_number=account_number,
                account_name=account_name,
                credit_debit="credit" if amount >= 0 else "debit",
                transaction_type=infer_transaction_type(description),
                provider_name=provider,
                merchant_name=extract_merchant_name(description),
                included=True,
                balance=balance,
                source="csv",
                source_file=filename,
            )
        )

    if skipped:
        logger.debug("bank-export CSV: skipped %d unparseable rows", skipped)
    logger.info(
        "Parsed %d transactions from bank-export CSV for account %s",
        len(out),
        account_number,
    )
    return out


__all__ = ["EXPECTED_HEADERS", "to_transactions"]
