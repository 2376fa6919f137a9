"""Ledger operations over a :class:`~bank_buckets.persistence.LedgerStore`.

Every function here is a read-modify-write against the injected store: it
loads the collections it needs, applies one of the pure core functions and
persists the result. Nothing is committed here; callers wrap calls in a
session scope (see :func:`db.client.session_scope`).
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from os import PathLike
from typing import Literal

from .accounts import detect_accounts
from .balances import Balances, calculate_balances, calculate_balances_from_classifications
from .buckets import (
    auto_assign_by_keywords,
    new_bucket_id,
    remove_bucket_classifications,
    suggest_buckets,
)
from .duplicates import merge_transactions
from .errors import LedgerError, ParseError, StoreCapacityError
from .ingest.parsers import parse_statement_file
from .logging_setup import get_logger
from .models import (
    UNKNOWN_ACCOUNT,
    AccountSuggestion,
    Bucket,
    BucketSuggestion,
    MergeStats,
    SavedAccount,
    StartingAllocation,
)
from .persistence import (
    KEY_CONFIRMED_ACCOUNTS,
    KEY_TRANSACTION_CLASSIFICATIONS,
    KEY_TRANSACTIONS,
    LedgerStore,
)

logger = get_logger("bank_buckets.api")

type BalanceMode = Literal["keyword", "classified"]


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FileImportResult:
    path: str
    parsed: int
    stats: MergeStats
    debug_log: str | None = None


@dataclass(slots=True)
class ImportReport:
    files: list[FileImportResult] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def parsed(self) -> int:
        return sum(f.parsed for f in self.files)

    @property
    def unique(self) -> int:
        return sum(f.stats.unique for f in self.files)

    @property
    def duplicates(self) -> int:
        return sum(f.stats.duplicates for f in self.files)


def import_statements(
    store: LedgerStore,
    paths: Iterable[str | PathLike[str]],
    *,
    default_year: int | None = None,
) -> ImportReport:
    """Parse, merge and persist statement files one after another.

    Each file is merged against the store content left by the previous one,
    so duplicates across files in the same batch are detected. A file that
    fails to read or parse is recorded in ``errors`` and the batch continues.
    """

    report = ImportReport()
    for path in paths:
        name = os.path.basename(os.fspath(path))
        try:
            parsed = parse_statement_file(path, default_year=default_year)
            result = merge_transactions(store.get_transactions(), parsed.transactions)
            store.save_transactions(result.merged)
        except (ParseError, OSError, StoreCapacityError) as exc:
            logger.warning("Import of %s failed: %s", name, exc)
            report.errors.append(f"{name}: {exc}")
            continue

        report.files.append(
            FileImportResult(
                path=os.fspath(path),
                parsed=len(parsed.transactions),
                stats=result.stats,
                debug_log=parsed.debug.format() if parsed.debug is not None else None,
            )
        )
        logger.info(
            "Imported %s: %d parsed, %d new, %d duplicates",
            name,
            len(parsed.transactions),
            result.stats.unique,
            result.stats.duplicates,
        )
    return report


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def account_suggestions(store: LedgerStore) -> list[AccountSuggestion]:
    return detect_accounts(store.get_transactions(), store.get_saved_accounts())


def _upsert(accounts: list[SavedAccount], account: SavedAccount) -> list[SavedAccount]:
    out = [a for a in accounts if a.account_number != account.account_number]
    out.append(account)
    return out


def save_account(store: LedgerStore, account: SavedAccount, *, confirm: bool = True) -> None:
    """Store (or replace) saved metadata for an account and mark it confirmed."""

    if account.account_name is None:
        account = account.model_copy(update={"account_name": f"Account {account.account_number}"})
    store.save_saved_accounts(_upsert(store.get_saved_accounts(), account))
    if confirm:
        store.save_confirmed_accounts(_upsert(store.get_confirmed_accounts(), account))


@dataclass(frozen=True, slots=True)
class AccountMergeResult:
    transactions_moved: int
    buckets_moved: int


def merge_accounts(store: LedgerStore, source: str, target: str) -> AccountMergeResult:
    """Move ``source``'s transactions and buckets onto ``target``.

    The source's saved and confirmed metadata is removed.
    """

    source, target = source.strip(), target.strip()
    if not source or not target:
        raise LedgerError("Both source and target account numbers are required")
    if source == target:
        raise LedgerError("Cannot merge an account into itself")

    transactions = store.get_transactions()
    moved_tx = 0
    for tx in transactions:
        if tx.account_number == source:
            tx.account_number = target
            moved_tx += 1
    store.save_transactions(transactions)

    buckets = store.get_buckets()
    moved_buckets = 0
    for i, bucket in enumerate(buckets):
        if bucket.account_number == source:
            buckets[i] = bucket.model_copy(update={"account_number": target})
            moved_buckets += 1
    store.save_buckets(buckets)

    store.save_saved_accounts([a for a in store.get_saved_accounts() if a.account_number != source])
    store.save_confirmed_accounts(
        [a for a in store.get_confirmed_accounts() if a.account_number != source]
    )
    logger.info(
        "Merged account %s into %s: %d transactions, %d buckets",
        source,
        target,
        moved_tx,
        moved_buckets,
    )
    return AccountMergeResult(transactions_moved=moved_tx, buckets_moved=moved_buckets)


def delete_saved_account(store: LedgerStore, account_number: str) -> None:
    """Forget an account's metadata, its buckets and its classifications.

    Transactions themselves are kept.
    """

    store.save_saved_accounts(
        [a for a in store.get_saved_accounts() if a.account_number != account_number]
    )
    store.save_confirmed_accounts(
        [a for a in store.get_confirmed_accounts() if a.account_number != account_number]
    )
    store.save_buckets([b for b in store.get_buckets() if b.account_number != account_number])

    classifications = store.get_transaction_classifications()
    for tx in store.get_transactions():
        if (tx.account_number or UNKNOWN_ACCOUNT) == account_number:
            classifications.pop(tx.transaction_id, None)
    store.save_transaction_classifications(classifications)


# ---------------------------------------------------------------------------
# Buckets
# ---------------------------------------------------------------------------


def _require_bucket(store: LedgerStore, bucket_id: str) -> Bucket:
    for bucket in store.get_buckets():
        if bucket.id == bucket_id:
            return bucket
    raise LedgerError(f"Unknown bucket: {bucket_id}")


def _require_bucket_account(store: LedgerStore, account_number: str) -> None:
    """Buckets belong to savings accounts; day-to-day accounts are refused."""

    for account in (*store.get_saved_accounts(), *store.get_confirmed_accounts()):
        if account.account_number == account_number and account.account_type == "day_to_day":
            raise LedgerError(
                f"Account {account_number} is a day-to-day account; "
                "buckets need a savings account"
            )


def _unique_keywords(keywords: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for kw in keywords:
        kw = kw.strip()
        if kw and kw.lower() not in seen:
            seen.add(kw.lower())
            out.append(kw)
    return out


def _update_bucket(store: LedgerStore, bucket_id: str, **changes: object) -> Bucket:
    buckets = store.get_buckets()
    for i, bucket in enumerate(buckets):
        if bucket.id == bucket_id:
            buckets[i] = Bucket.model_validate(bucket.model_dump() | changes)
            store.save_buckets(buckets)
            return buckets[i]
    raise LedgerError(f"Unknown bucket: {bucket_id}")


def add_bucket(
    store: LedgerStore,
    name: str,
    account_number: str,
    keywords: Sequence[str] | None = None,
    *,
    bucket_id: str | None = None,
) -> Bucket:
    """Create a bucket whose first keyword is its name.

    Extra ``keywords`` follow the name; case-insensitive repeats are dropped.
    Raises :class:`LedgerError` for day-to-day accounts and duplicate ids.
    """

    _require_bucket_account(store, account_number)
    bucket = Bucket(
        id=bucket_id or new_bucket_id(),
        name=name,
        account_number=account_number,
        keywords=_unique_keywords([name, *(keywords or ())]),
    )
    buckets = store.get_buckets()
    if any(b.id == bucket.id for b in buckets):
        raise LedgerError(f"Bucket id already exists: {bucket.id}")
    buckets.append(bucket)
    store.save_buckets(buckets)
    return bucket


def _keyword_index(bucket: Bucket, keyword: str) -> int | None:
    target = keyword.strip().lower()
    for i, kw in enumerate(bucket.keywords):
        if kw.lower() == target:
            return i
    return None


def _require_keyword_index(bucket: Bucket, keyword: str) -> int:
    index = _keyword_index(bucket, keyword)
    if index is None:
        raise LedgerError(f"Bucket {bucket.id} has no keyword {keyword!r}")
    return index


def rename_bucket(store: LedgerStore, bucket_id: str, new_name: str) -> Bucket:
    """Rename a bucket and keep its name keyword in step.

    When the old name is one of the keywords it is replaced in place by the
    new name; otherwise the new name is put first. The user's other keywords
    are kept.
    """

    new_name = new_name.strip()
    if not new_name:
        raise LedgerError("Bucket name must not be empty")
    bucket = _require_bucket(store, bucket_id)

    keywords = list(bucket.keywords)
    index = _keyword_index(bucket, bucket.name)
    if index is not None:
        keywords[index] = new_name
    else:
        keywords.insert(0, new_name)
    return _update_bucket(store, bucket_id, name=new_name, keywords=_unique_keywords(keywords))


def add_bucket_keyword(store: LedgerStore, bucket_id: str, keyword: str) -> Bucket:
    keyword = keyword.strip()
    if not keyword:
        raise LedgerError("Keyword must not be empty")
    bucket = _require_bucket(store, bucket_id)
    return _update_bucket(
        store, bucket_id, keywords=_unique_keywords([*bucket.keywords, keyword])
    )


def update_bucket_keyword(
    store: LedgerStore, bucket_id: str, keyword: str, new_keyword: str
) -> Bucket:
    """Replace one keyword (matched case-insensitively) keeping its position."""

    new_keyword = new_keyword.strip()
    if not new_keyword:
        raise LedgerError("Keyword must not be empty; remove it instead")
    bucket = _require_bucket(store, bucket_id)
    keywords = list(bucket.keywords)
    keywords[_require_keyword_index(bucket, keyword)] = new_keyword
    return _update_bucket(store, bucket_id, keywords=_unique_keywords(keywords))


def remove_bucket_keyword(store: LedgerStore, bucket_id: str, keyword: str) -> Bucket:
    """Drop one keyword; the name keyword may be removed like any other.

    A bucket left without keywords matches nothing by keyword but can still
    receive explicit classifications.
    """

    bucket = _require_bucket(store, bucket_id)
    keywords = list(bucket.keywords)
    del keywords[_require_keyword_index(bucket, keyword)]
    return _update_bucket(store, bucket_id, keywords=keywords)


def delete_bucket(store: LedgerStore, bucket_id: str) -> int:
    """Delete a bucket with its classifications and starting allocation.

    Returns the number of classifications removed.
    """

    _require_bucket(store, bucket_id)
    store.save_buckets([b for b in store.get_buckets() if b.id != bucket_id])

    classifications = store.get_transaction_classifications()
    removed = remove_bucket_classifications(classifications, bucket_id)
    store.save_transaction_classifications(classifications)

    allocations = store.get_starting_allocations()
    if allocations.pop(bucket_id, None) is not None:
        store.save_starting_allocations(allocations)
    return removed


def bucket_suggestions(
    store: LedgerStore, account_number: str | None = None
) -> list[BucketSuggestion]:
    """Suggest buckets from stored transactions (optionally one account's)."""

    txs = store.get_transactions()
    if account_number is not None:
        txs = [tx for tx in txs if tx.account_number == account_number]
    return suggest_buckets(txs)


def accept_bucket_suggestions(store: LedgerStore, account_number: str) -> list[Bucket]:
    """Create a bucket for every suggestion drawn from one account."""

    _require_bucket_account(store, account_number)
    created = [s.to_bucket(account_number) for s in bucket_suggestions(store, account_number)]
    if created:
        store.save_buckets([*store.get_buckets(), *created])
    return created


def set_starting_allocation(
    store: LedgerStore,
    bucket_id: str,
    amount: Decimal | str,
    date: str | None = None,
) -> StartingAllocation:
    _require_bucket(store, bucket_id)
    allocation = StartingAllocation(amount=amount, date=date)
    allocations = store.get_starting_allocations()
    allocations[bucket_id] = allocation
    store.save_starting_allocations(allocations)
    return allocation


def classify_transaction(store: LedgerStore, transaction_id: str, bucket_id: str | None) -> None:
    """Assign a transaction to a bucket; ``None`` clears the assignment."""

    if not any(tx.transaction_id == transaction_id for tx in store.get_transactions()):
        raise LedgerError(f"Unknown transaction: {transaction_id}")
    classifications = store.get_transaction_classifications()
    if bucket_id is None:
        classifications.pop(transaction_id, None)
    else:
        _require_bucket(store, bucket_id)
        classifications[transaction_id] = bucket_id
    store.save_transaction_classifications(classifications)


def auto_assign(store: LedgerStore) -> int:
    classifications = store.get_transaction_classifications()
    count = auto_assign_by_keywords(store.get_transactions(), store.get_buckets(), classifications)
    if count:
        store.save_transaction_classifications(classifications)
    return count


# ---------------------------------------------------------------------------
# Balances and reset
# ---------------------------------------------------------------------------


def bucket_balances(store: LedgerStore, *, mode: BalanceMode = "keyword") -> Balances:
    buckets = store.get_buckets()
    transactions = store.get_transactions()
    allocations = store.get_starting_allocations()
    if mode == "keyword":
        return calculate_balances(buckets, transactions, allocations)
    if mode == "classified":
        return calculate_balances_from_classifications(
            buckets, transactions, store.get_transaction_classifications(), allocations
        )
    raise LedgerError(f"Unknown balance mode: {mode!r}")


def reset(store: LedgerStore) -> None:
    """Drop imported data; saved accounts, buckets and allocations survive."""

    store.clear([KEY_TRANSACTIONS, KEY_CONFIRMED_ACCOUNTS, KEY_TRANSACTION_CLASSIFICATIONS])
    logger.info("Ledger reset: transactions, confirmed accounts and classifications cleared")


__all__ = [
    "BalanceMode",
    "FileImportResult",
    "ImportReport",
    "AccountMergeResult",
    "import_statements",
    "account_suggestions",
    "save_account",
    "merge_accounts",
    "delete_saved_account",
    "add_bucket",
    "rename_bucket",
    "add_bucket_keyword",
    "update_bucket_keyword",
    "remove_bucket_keyword",
    "delete_bucket",
    "bucket_suggestions",
    "accept_bucket_suggestions",
    "set_starting_allocation",
    "classify_transaction",
    "auto_assign",
    "bucket_balances",
    "reset",
]
