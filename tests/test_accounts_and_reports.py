from __future__ import annotations

import csv
import io
from decimal import Decimal

from bank_buckets.accounts import detect_accounts, extract_accounts, is_valid_account
from bank_buckets.models import Bucket, SavedAccount, StartingAllocation, Transaction
from bank_buckets.reports import (
    DIAGNOSTIC_COLUMNS,
    diagnostics_csv,
    export_balances_csv,
    format_balance_summary,
    format_money,
)


def _tx(tx_id: str, description: str, amount: str, account: str, date: str = "2024-01-15"):
    return Transaction(
        transaction_id=tx_id,
        description=description,
        amount=Decimal(amount),
        transaction_date=date,
        account_number=account,
    )


TXS = [
    _tx("1", "Coffee", "-4.50", "111"),
    _tx("2", "Salary", "2000", "222"),
    _tx("3", "Rent", "-500", "222"),
    _tx("4", "Mystery", "-1", ""),
]


def test_extract_accounts_groups_in_first_seen_order():
    summaries = extract_accounts(TXS)
    assert [s.account_number for s in summaries] == ["111", "222", "unknown"]
    assert summaries[1].transaction_count == 2
    assert summaries[1].balance == Decimal("1500")
    assert summaries[0].account_name == "Account 111"


def test_account_balance_resolves_sign_like_the_balance_engine():
    txs = [
        Transaction(
            transaction_id="1",
            description="Coffee",
            amount=Decimal("3.00"),
            transaction_date="2024-01-15",
            account_number="111",
            credit_debit="debit",
        ),
        Transaction(
            transaction_id="2",
            description="Refund",
            amount=Decimal("-1.00"),
            transaction_date="2024-01-16",
            account_number="111",
            credit_debit="credit",
        ),
    ]
    [summary] = extract_accounts(txs)
    assert summary.balance == Decimal("4.00")
    assert detect_accounts(txs, [])[0].balance == Decimal("4.00")


def test_detect_accounts_prefers_saved_metadata_and_sorts_by_activity():
    saved = [SavedAccount(account_number="111", account_name="Bills", bsb="123-456")]
    suggestions = detect_accounts(TXS, saved)

    assert [s.account_number for s in suggestions] == ["222", "111", "unknown"]
    bills = suggestions[1]
    assert bills.account_name == "Bills"
    assert bills.bsb == "123-456"
    assert bills.is_saved and not bills.suggested
    assert suggestions[0].suggested and not suggestions[0].is_saved


def test_is_valid_account():
    suggestions = {s.account_number: s for s in detect_accounts(TXS, [])}
    assert is_valid_account(suggestions["111"])
    assert not is_valid_account(suggestions["unknown"])
    assert not is_valid_account(None)


def test_format_money_rounds_half_up_without_negative_zero():
    assert format_money(Decimal("2.005")) == "2.01"
    assert format_money(Decimal("-0.001")) == "0.00"
    assert format_money(None) == "0.00"
    assert format_money(Decimal("-4.5")) == "-4.50"


BUCKETS = [
    Bucket(id="b1", name="Coffee", account_number="111", keywords=["coffee"]),
    Bucket(id="b2", name='Rent, "Home"', account_number="222", keywords=["rent"]),
]
BALANCES = {"b1": Decimal("-4.5"), "b2": Decimal("1200")}


def test_export_balances_csv_layout():
    out = export_balances_csv(BUCKETS, BALANCES)
    assert out == (
        "Bucket Name,Balance\n"
        '"Coffee",-4.50\n'
        '"Rent, ""Home""",1200.00\n'
        '"Total",1195.50\n'
    )
    # Parses back with a standard CSV reader
    rows = list(csv.reader(io.StringIO(out)))
    assert rows[2] == ['Rent, "Home"', "1200.00"]


def test_format_balance_summary_layout():
    assert format_balance_summary(BUCKETS, BALANCES) == (
        "Bank Buckets Summary\n"
        "===================\n"
        "\n"
        "Coffee: $-4.50\n"
        'Rent, "Home": $1200.00\n'
        "\n"
        "Total: $1195.50\n"
    )


def test_diagnostics_csv_explains_each_transaction():
    txs = [_tx("1", "Coffee", "-4.50", "111", "2024-01-01"), _tx("2", "Rent", "-500", "222")]
    txs[1].included = False
    out = diagnostics_csv(
        txs,
        buckets=BUCKETS,
        classifications={"1": "b1"},
        saved_accounts=[SavedAccount(account_number="111", account_name="Bills", account_type="savings")],
        starting_allocations={"b1": StartingAllocation(amount="10", date="2024-01-10")},
    )

    rows = list(csv.DictReader(io.StringIO(out)))
    assert tuple(rows[0].keys()) == DIAGNOSTIC_COLUMNS
    coffee, rent = rows
    assert coffee["account_name"] == "Bills"
    assert coffee["account_type"] == "savings"
    assert coffee["classified_bucket"] == "Coffee"
    assert coffee["keyword_buckets"] == "Coffee"
    assert coffee["signed_amount"] == "-4.50"
    assert coffee["before_allocation_date"] == "yes"
    assert rent["included"] == "no"
    assert rent["classified_bucket"] == ""
    assert rent["keyword_buckets"] == 'Rent, "Home"'
