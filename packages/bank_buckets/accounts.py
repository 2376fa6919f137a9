"""Account aggregation over a transaction set."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from .models import (
    UNKNOWN_ACCOUNT,
    AccountSuggestion,
    AccountSummary,
    SavedAccount,
    Transaction,
)


def _group(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    groups: dict[str, list[Transaction]] = {}
    for tx in transactions:
        groups.setdefault(tx.account_number or UNKNOWN_ACCOUNT, []).append(tx)
    return groups


def net_balance(transactions: Iterable[Transaction]) -> Decimal:
    return sum((tx.signed_amount for tx in transactions), Decimal("0"))


def extract_accounts(transactions: Iterable[Transaction]) -> list[AccountSummary]:
    """Per-account count and net balance, in first-seen order."""

    return [
        AccountSummary(
            account_number=number,
            account_name=txs[0].account_name or "Unknown Account",
            transaction_count=len(txs),
            balance=net_balance(txs),
        )
        for number, txs in _group(transactions).items()
    ]


def detect_accounts(
    transactions: Iterable[Transaction], saved_accounts: Sequence[SavedAccount]
) -> list[AccountSuggestion]:
    """Account suggestions for confirmation, most active account first.

    Saved account metadata (name, BSB, type) takes precedence over what the
    transactions carry.
    """

    saved_by_number = {sa.account_number: sa for sa in saved_accounts}
    out: list[AccountSuggestion] = []
    for number, txs in _group(transactions).items():
        saved = saved_by_number.get(number)
        name = (saved.account_name if saved else None) or txs[0].account_name or f"Account {number}"
        out.append(
            AccountSuggestion(
                account_number=number,
                account_name=name,
                bsb=saved.bsb if saved else None,
                transaction_count=len(txs),
                balance=net_balance(txs),
                account_type=saved.account_type if saved else None,
                suggested=saved is None,
                is_saved=saved is not None,
            )
        )
    out.sort(key=lambda s: s.transaction_count, reverse=True)
    return out


def is_valid_account(suggestion: AccountSuggestion | None) -> bool:
    return bool(
        suggestion
        and suggestion.account_number
        and suggestion.account_number != UNKNOWN_ACCOUNT
        and suggestion.transaction_count > 0
    )


__all__ = ["net_balance", "extract_accounts", "detect_accounts", "is_valid_account"]
