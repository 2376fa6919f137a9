from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

import pytest
from bank_buckets.errors import StoreCapacityError, StoreConflictError, StoreError
from bank_buckets.models import Bucket, SavedAccount, StartingAllocation, Transaction
from bank_buckets.persistence import (
    DEFAULT_MAX_BYTES,
    KEY_BUCKETS,
    KEY_TRANSACTIONS,
    LedgerStore,
    max_bytes_from_env,
)
from db.client import session_scope
from db.models.ledger import BbStoreEntry

from tests.helpers.db import stored_keys


def _tx(tx_id: str = "tx_1") -> Transaction:
    return Transaction(
        transaction_id=tx_id,
        description="Coffee Shop",
        amount=Decimal("-4.50"),
        transaction_date="2024-01-15",
        account_number="12345678",
        credit_debit="debit",
        balance=Decimal("95.50"),
    )


def test_empty_store_reads_as_empty_collections(store: LedgerStore):
    assert store.get_transactions() == []
    assert store.get_buckets() == []
    assert store.get_starting_allocations() == {}
    assert store.get_transaction_classifications() == {}
    assert store.get_saved_accounts() == []
    assert store.get_confirmed_accounts() == []
    assert store.version(KEY_TRANSACTIONS) == 0


def test_round_trip_across_sessions(database_url: str):
    bucket = Bucket(id="b1", name="Coffee", account_number="12345678", keywords=["coffee"])
    with session_scope(database_url=database_url) as session:
        s = LedgerStore(session)
        s.save_transactions([_tx()])
        s.save_buckets([bucket])
        s.save_starting_allocations({"b1": StartingAllocation(amount="12.5", date="2024-01-01")})
        s.save_transaction_classifications({"tx_1": "b1"})
        s.save_saved_accounts([SavedAccount(account_number="12345678", account_name="Main")])

    with session_scope(database_url=database_url) as session:
        s = LedgerStore(session)
        assert s.get_transactions() == [_tx()]
        assert s.get_buckets() == [bucket]
        alloc = s.get_starting_allocations()["b1"]
        assert alloc.amount == Decimal("12.5")
        assert alloc.date == "2024-01-01"
        assert s.get_transaction_classifications() == {"tx_1": "b1"}
        assert s.get_saved_accounts()[0].account_name == "Main"


def test_versions_increment_and_guard_stale_writes(store: LedgerStore):
    assert store.save_buckets([]) == 1
    assert store.save_buckets([], expected_version=1) == 2
    with pytest.raises(StoreConflictError):
        store.save_buckets([], expected_version=1)
    assert store.version(KEY_BUCKETS) == 2


def test_capacity_limit_rejects_oversized_writes(store: LedgerStore):
    small = LedgerStore(store.session, max_bytes=400)
    small.save_transaction_classifications({"a": "b"})
    many = [
        Bucket(id=f"b{i}", name=f"Bucket {i}", account_number="1", keywords=["k"])
        for i in range(20)
    ]
    with pytest.raises(StoreCapacityError):
        small.save_buckets(many)
    # The failed write left nothing behind
    assert small.get_buckets() == []
    assert small.get_transaction_classifications() == {"a": "b"}


def test_max_bytes_from_env(monkeypatch: pytest.MonkeyPatch):
    assert max_bytes_from_env() == DEFAULT_MAX_BYTES
    monkeypatch.setenv("BANK_BUCKETS_STORE_MAX_BYTES", "1024")
    assert max_bytes_from_env() == 1024
    monkeypatch.setenv("BANK_BUCKETS_STORE_MAX_BYTES", "lots")
    with pytest.raises(StoreError):
        max_bytes_from_env()


def test_malformed_payload_raises_store_error(store: LedgerStore):
    store.session.add(
        BbStoreEntry(
            key=KEY_BUCKETS,
            value={"not": "a list"},
            size_bytes=0,
            version=1,
            updated_at=datetime.now(UTC),
        )
    )
    store.session.flush()
    with pytest.raises(StoreError):
        store.get_buckets()


def test_invalid_bucket_payload_raises_store_error(store: LedgerStore):
    store.session.add(
        BbStoreEntry(
            key=KEY_BUCKETS,
            value=[{"id": "", "name": "x", "account_number": "1"}],
            size_bytes=0,
            version=1,
            updated_at=datetime.now(UTC),
        )
    )
    store.session.flush()
    with pytest.raises(StoreError):
        store.get_buckets()


def test_clear_selected_keys(database_url: str):
    with session_scope(database_url=database_url) as session:
        s = LedgerStore(session)
        s.save_transactions([_tx()])
        s.save_buckets([])
        s.clear([KEY_TRANSACTIONS])
        assert s.get_transactions() == []

    assert stored_keys(database_url) == {KEY_BUCKETS}
