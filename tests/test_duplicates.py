from __future__ import annotations

from decimal import Decimal

from bank_buckets.duplicates import (
    are_duplicates,
    description_similarity,
    extract_reference_id,
    merge_transactions,
)
from bank_buckets.models import Transaction


def _tx(
    tx_id: str,
    description: str,
    amount: str,
    date: str | None = "2024-01-15",
    account: str = "12345678",
) -> Transaction:
    return Transaction(
        transaction_id=tx_id,
        description=description,
        amount=Decimal(amount),
        transaction_date=date,
        account_number=account,
    )


def test_extract_reference_id_normalizes_token():
    assert extract_reference_id("Transfer NET#12345 to savings") == "NET#12345"
    assert extract_reference_id("Osko payment Ref. 998") == "REF.998"
    assert extract_reference_id("Coffee") is None
    assert extract_reference_id(None) is None


def test_description_similarity_is_symmetric():
    a, b = "woolworths sydney", "woolworths sydney store"
    assert description_similarity(a, b) == description_similarity(b, a)
    assert description_similarity(a, a) == 1.0
    assert description_similarity("coffee shop", "uber trip") == 0.0


def test_reference_match_bypasses_date_and_account_checks():
    a = _tx("a", "Transfer NET#123 to savings", "100.00", "2024-01-01", "12345678")
    b = _tx("b", "NET#123 internet banking", "-100.04", "2024-03-01", "99999999")
    assert are_duplicates(a, b)
    assert are_duplicates(b, a)


def test_amount_gap_rejects():
    assert not are_duplicates(_tx("a", "Coffee", "-4.50"), _tx("b", "Coffee", "-4.52"))
    # Direction is ignored: magnitudes are compared
    assert are_duplicates(_tx("a", "Coffee", "-4.50"), _tx("b", "Coffee", "4.50"))


def test_date_window_is_one_day():
    base = _tx("a", "Coffee", "-4.50", "2024-01-15")
    assert are_duplicates(base, _tx("b", "Coffee", "-4.50", "2024-01-16"))
    assert not are_duplicates(base, _tx("b", "Coffee", "-4.50", "2024-01-17"))
    # Undated records sort at the epoch and only match each other
    assert are_duplicates(_tx("a", "Coffee", "-4.50", None), _tx("b", "Coffee", "-4.50", None))


def test_masked_account_suffix_is_compatible():
    full = _tx("a", "Coffee", "-4.50", account="12345678")
    assert are_duplicates(full, _tx("b", "Coffee", "-4.50", account="xxxx5678"))
    assert not are_duplicates(full, _tx("b", "Coffee", "-4.50", account="87654321"))


def test_description_rules():
    base = _tx("a", "WOOLWORTHS 1234 SYDNEY", "-45.00")
    # Truncated description is contained in the full one
    assert are_duplicates(base, _tx("b", "woolworths 1234", "-45.00"))
    assert not are_duplicates(base, _tx("b", "Uber Eats Order", "-45.00"))


def test_merge_enriches_matches_and_appends_the_rest():
    existing = [_tx("a", "Coffee", "-4.50", account="xxxx5678")]
    incoming = [
        _tx("a2", "Coffee Shop Sydney", "-4.50", account="12345678"),
        _tx("b", "Salary", "2000.00", "2024-01-16"),
        _tx("b2", "Salary", "2000.00", "2024-01-16"),
    ]

    result = merge_transactions(existing, incoming)

    assert result.stats.existing == 1
    assert result.stats.new == 3
    assert result.stats.unique == 1
    assert result.stats.duplicates == 2
    assert result.stats.total == 2
    enriched = result.merged[0]
    assert enriched.transaction_id == "a"
    assert enriched.description == "Coffee Shop Sydney"
    assert enriched.account_number == "12345678"
    # Caller's records are untouched
    assert existing[0].description == "Coffee"
    assert existing[0].account_number == "xxxx5678"


def test_merge_with_nothing_incoming_returns_existing_unchanged():
    existing = [_tx("a", "Coffee", "-4.50"), _tx("b", "Salary", "2000.00", "2024-01-16")]

    result = merge_transactions(existing, [])

    assert result.merged == existing
    assert result.merged[0] is not existing[0]
    assert result.stats.duplicates == 0
    assert result.stats.unique == 0
    assert result.stats.total == 2


def test_merging_the_same_batch_again_adds_nothing():
    batch = [_tx("a", "Coffee", "-4.50"), _tx("b", "Salary", "2000.00", "2024-01-16")]

    result = merge_transactions(batch, [t.copy() for t in batch])

    assert result.merged == batch
    assert result.stats.duplicates == 2
    assert result.stats.unique == 0


def test_merge_never_masks_a_known_account():
    existing = [_tx("a", "Coffee", "-4.50", account="12345678")]
    result = merge_transactions(existing, [_tx("b", "Coffee", "-4.50", account="xxxx5678")])
    assert result.stats.duplicates == 1
    assert result.merged[0].account_number == "12345678"


def test_user_description_follows_description_only_when_in_sync():
    a = _tx("a", "Coffee", "-4.50")
    a.user_description = "My latte"
    result = merge_transactions([a], [_tx("b", "Coffee Shop Sydney", "-4.50")])
    assert result.merged[0].description == "Coffee Shop Sydney"
    assert result.merged[0].user_description == "My latte"
