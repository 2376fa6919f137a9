# ruff: noqa: I001
"""Persistence integration for bank_buckets.

``LedgerStore`` is the repository the ledger API reads from and writes to. Each
logical collection is stored whole, as one JSON document, in the ``bb_store``
key-value table owned by ``libs/db`` (ORM model ``db.models.ledger``).

Scope:
- Typed get/save pairs per collection; reads of absent keys return empty
  collections, malformed payloads raise ``StoreError``.
- A store-wide capacity limit (serialized bytes across all keys).
- A per-key ``version`` counter with opt-in optimistic concurrency checks
  (``expected_version``); without it the last writer wins.

The store flushes but never commits; the caller owns the transaction.
"""

from __future__ import annotations

import json
import os
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from db.models.ledger import BbStoreEntry
from .errors import StoreCapacityError, StoreConflictError, StoreError
from .logging_setup import get_logger
from .models import Bucket, SavedAccount, StartingAllocation, Transaction

logger = get_logger("bank_buckets.persistence")

KEY_TRANSACTIONS = "bank_buckets_transactions"
KEY_BUCKETS = "bank_buckets_buckets"
KEY_STARTING_ALLOCATIONS = "bank_buckets_starting_allocations"
KEY_CONFIRMED_ACCOUNTS = "bank_buckets_confirmed_accounts"
KEY_TRANSACTION_CLASSIFICATIONS = "bank_buckets_transaction_classifications"
KEY_SAVED_ACCOUNTS = "bank_buckets_saved_accounts"

ALL_KEYS: tuple[str, ...] = (
    KEY_TRANSACTIONS,
    KEY_BUCKETS,
    KEY_STARTING_ALLOCATIONS,
    KEY_CONFIRMED_ACCOUNTS,
    KEY_TRANSACTION_CLASSIFICATIONS,
    KEY_SAVED_ACCOUNTS,
)

DEFAULT_MAX_BYTES = 5 * 1024 * 1024


def max_bytes_from_env() -> int:
    """Resolve the store capacity from ``BANK_BUCKETS_STORE_MAX_BYTES``."""

    raw = (os.getenv("BANK_BUCKETS_STORE_MAX_BYTES") or "").strip()
    if not raw:
        return DEFAULT_MAX_BYTES
    try:
        value = int(raw)
    except ValueError as exc:
        raise StoreError(f"BANK_BUCKETS_STORE_MAX_BYTES must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise StoreError("BANK_BUCKETS_STORE_MAX_BYTES must be positive")
    return value


def _serialize(key: str, value: Any) -> int:
    try:
        encoded = json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Could not serialize {key}: {exc}") from exc
    return len(encoded.encode("utf-8"))


class LedgerStore:
    """Key-value repository over a SQLAlchemy session.

    Parameters
    ----------
    session:
        Open session; the store flushes writes but leaves commit/rollback to
        the caller.
    max_bytes:
        Capacity across all keys. ``None`` reads ``BANK_BUCKETS_STORE_MAX_BYTES``
        (default 5 MiB).
    """

    def __init__(self, session: Session, *, max_bytes: int | None = None) -> None:
        self.session = session
        self.max_bytes = max_bytes if max_bytes is not None else max_bytes_from_env()

    # ---- raw access ---------------------------------------------------------

    def _entry(self, key: str) -> BbStoreEntry | None:
        return self.session.get(BbStoreEntry, key)

    def _load(self, key: str) -> Any | None:
        entry = self._entry(key)
        return None if entry is None else entry.value

    def version(self, key: str) -> int:
        """Current write counter of ``key`` (0 when never written)."""

        entry = self._entry(key)
        return 0 if entry is None else entry.version

    def _save(self, key: str, value: Any, *, expected_version: int | None = None) -> int:
        size = _serialize(key, value)
        entry = self._entry(key)
        current = 0 if entry is None else entry.version
        if expected_version is not None and expected_version != current:
            raise StoreConflictError(
                f"{key} was modified concurrently (expected version {expected_version}, "
                f"found {current})"
            )

        others = self.session.execute(
            select(func.coalesce(func.sum(BbStoreEntry.size_bytes), 0)).where(
                BbStoreEntry.key != key
            )
        ).scalar_one()
        if int(others) + size > self.max_bytes:
            raise StoreCapacityError(
                f"Saving {key} ({size} bytes) would exceed the store capacity of "
                f"{self.max_bytes} bytes ({int(others)} bytes used by other data)"
            )

        now = datetime.now(UTC)
        if entry is None:
            entry = BbStoreEntry(key=key, value=value, size_bytes=size, version=1, updated_at=now)
            self.session.add(entry)
        else:
            entry.value = value
            entry.size_bytes = size
            entry.version = current + 1
            entry.updated_at = now
        self.session.flush()
        logger.debug("Saved %s (%d bytes, version %d)", key, size, entry.version)
        return entry.version

    def clear(self, keys: Iterable[str] | None = None) -> None:
        """Delete the given keys (all ledger keys when ``None``)."""

        targets = list(ALL_KEYS if keys is None else keys)
        self.session.execute(delete(BbStoreEntry).where(BbStoreEntry.key.in_(targets)))
        self.session.flush()
        # Bulk delete bypasses the identity map
        self.session.expire_all()

    # ---- typed helpers ------------------------------------------------------

    def _load_list(self, key: str) -> list[Any]:
        raw = self._load(key)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StoreError(f"Stored {key} is not a list")
        return raw

    def _load_dict(self, key: str) -> dict[str, Any]:
        raw = self._load(key)
        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise StoreError(f"Stored {key} is not an object")
        return raw

    def _load_models[M: BaseModel](self, key: str, model: type[M]) -> list[M]:
        try:
            return [model.model_validate(item) for item in self._load_list(key)]
        except ValidationError as exc:
            raise StoreError(f"Stored {key} failed validation: {exc}") from exc

    # ---- transactions -------------------------------------------------------

    def get_transactions(self) -> list[Transaction]:
        items = self._load_list(KEY_TRANSACTIONS)
        try:
            return [Transaction.from_dict(item) for item in items]
        except (TypeError, AttributeError) as exc:
            raise StoreError(f"Stored {KEY_TRANSACTIONS} is malformed: {exc}") from exc

    def save_transactions(
        self, transactions: Sequence[Transaction], *, expected_version: int | None = None
    ) -> int:
        return self._save(
            KEY_TRANSACTIONS,
            [tx.to_dict() for tx in transactions],
            expected_version=expected_version,
        )

    # ---- buckets ------------------------------------------------------------

    def get_buckets(self) -> list[Bucket]:
        return self._load_models(KEY_BUCKETS, Bucket)

    def save_buckets(
        self, buckets: Sequence[Bucket], *, expected_version: int | None = None
    ) -> int:
        return self._save(
            KEY_BUCKETS,
            [b.model_dump(mode="json") for b in buckets],
            expected_version=expected_version,
        )

    # ---- starting allocations ----------------------------------------------

    def get_starting_allocations(self) -> dict[str, StartingAllocation]:
        try:
            return {
                bucket_id: StartingAllocation.model_validate(value)
                for bucket_id, value in self._load_dict(KEY_STARTING_ALLOCATIONS).items()
            }
        except ValidationError as exc:
            raise StoreError(f"Stored {KEY_STARTING_ALLOCATIONS} failed validation: {exc}") from exc

    def save_starting_allocations(
        self,
        allocations: Mapping[str, StartingAllocation],
        *,
        expected_version: int | None = None,
    ) -> int:
        return self._save(
            KEY_STARTING_ALLOCATIONS,
            {k: v.model_dump(mode="json") for k, v in allocations.items()},
            expected_version=expected_version,
        )

    # ---- classifications ----------------------------------------------------

    def get_transaction_classifications(self) -> dict[str, str]:
        raw = self._load_dict(KEY_TRANSACTION_CLASSIFICATIONS)
        return {str(k): str(v) for k, v in raw.items() if v}

    def save_transaction_classifications(
        self, classifications: Mapping[str, str], *, expected_version: int | None = None
    ) -> int:
        return self._save(
            KEY_TRANSACTION_CLASSIFICATIONS,
            dict(classifications),
            expected_version=expected_version,
        )

    # ---- accounts -----------------------------------------------------------

    def get_saved_accounts(self) -> list[SavedAccount]:
        return self._load_models(KEY_SAVED_ACCOUNTS, SavedAccount)

    def save_saved_accounts(
        self, accounts: Sequence[SavedAccount], *, expected_version: int | None = None
    ) -> int:
        return self._save(
            KEY_SAVED_ACCOUNTS,
            [a.model_dump(mode="json") for a in accounts],
            expected_version=expected_version,
        )

    def get_confirmed_accounts(self) -> list[SavedAccount]:
        return self._load_models(KEY_CONFIRMED_ACCOUNTS, SavedAccount)

    def save_confirmed_accounts(
        self, accounts: Sequence[SavedAccount], *, expected_version: int | None = None
    ) -> int:
        return self._save(
            KEY_CONFIRMED_ACCOUNTS,
            [a.model_dump(mode="json") for a in accounts],
            expected_version=expected_version,
        )


__all__ = [
    "KEY_TRANSACTIONS",
    "KEY_BUCKETS",
    "KEY_STARTING_ALLOCATIONS",
    "KEY_CONFIRMED_ACCOUNTS",
    "KEY_TRANSACTION_CLASSIFICATIONS",
    "KEY_SAVED_ACCOUNTS",
    "ALL_KEYS",
    "DEFAULT_MAX_BYTES",
    "max_bytes_from_env",
    "LedgerStore",
]
