from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from bank_buckets.errors import ParseError
from bank_buckets.ingest.parsers import (
    StatementFormat,
    detect_format,
    parse_statement,
    parse_statement_file,
)

BANK_EXPORT_CSV = (
    "effective_date,entered_date,transaction_description,amount,balance\n"
    "15/01/2024,15/01/2024,Coffee Shop,-50.00,950.00\n"
    "16/01/2024,16/01/2024,Salary,100.00,1050.00\n"
)

AGGREGATOR_CSV = (
    "transaction_id,transaction_date,posted_date,account_number,account_name,"
    "description,user_description,amount,credit_debit,currency,included\n"
    "abc123,2024-01-15,2024-01-16,987654321,Everyday,WOOLWORTHS 123,Groceries,45.50,debit,AUD,true\n"
    ",2024-01-20,,987654321,Everyday,Salary,,2000.00,credit,AUD,\n"
    "skipme,,,987654321,Everyday,No date,,1.00,credit,AUD,true\n"
    "excluded,2024-01-21,,987654321,Everyday,Refund,,5.00,credit,AUD,false\n"
)

STATEMENT_NAME = "Statement_12345678_01.01.24-31.01.24.csv"


def test_detect_format_votes_on_bank_export_headers():
    headers = ["effective_date", "entered_date", "transaction_description", "amount", "balance"]
    assert detect_format(headers) is StatementFormat.BANK_EXPORT
    assert detect_format(["entered_date", "amount"]) is StatementFormat.BANK_EXPORT
    assert detect_format(["amount", "account_number"]) is StatementFormat.AGGREGATOR_EXPORT
    assert detect_format(["foo", "bar"]) is StatementFormat.AGGREGATOR_EXPORT


def test_bank_export_end_to_end_from_statement_filename():
    txs = parse_statement(BANK_EXPORT_CSV, STATEMENT_NAME)

    assert len(txs) == 2
    assert {tx.account_number for tx in txs} == {"12345678"}
    assert [tx.signed_amount for tx in txs] == [Decimal("-50.00"), Decimal("100.00")]
    assert [tx.credit_debit for tx in txs] == ["debit", "credit"]
    assert [tx.transaction_date for tx in txs] == ["2024-01-15", "2024-01-16"]
    first = txs[0]
    assert first.account_name == "Account 12345678"
    assert first.balance == Decimal("950.00")
    assert first.source == "csv"
    assert first.source_file == STATEMENT_NAME
    assert first.currency == "AUD"
    assert first.user_description == first.description == "Coffee Shop"


def test_bank_export_with_display_headers_and_unknown_account():
    text = (
        "Effective Date,Entered Date,Transaction Description,Amount,Balance\n"
        "15/01/2024,,Coffee Shop,-$4.50,$95.50\n"
        "17/01/2024,17/01/2024,Broken row,abc,1.00\n"
    )
    txs = parse_statement(text, "export.csv")

    # Unparseable amount is skipped; an empty entered date falls back to effective
    assert len(txs) == 1
    assert txs[0].account_number == "unknown"
    assert txs[0].transaction_date == "2024-01-15"
    assert txs[0].amount == Decimal("-4.50")


def test_aggregator_export_maps_columns_and_coerces_types():
    txs = parse_statement(AGGREGATOR_CSV, "aggregator.csv")

    assert len(txs) == 3
    groceries, salary, refund = txs
    assert groceries.transaction_id == "abc123"
    assert groceries.account_number == "987654321"
    assert groceries.posted_date == "2024-01-16"
    assert groceries.match_description == "Groceries"
    assert groceries.primary_description == "WOOLWORTHS 123"
    # A positive amount is money in even when marked debit
    assert groceries.signed_amount == Decimal("45.50")
    assert groceries.included is True

    # Missing id is generated; an empty `included` cell keeps the default
    assert salary.transaction_id.startswith("tx_")
    assert salary.included is True
    assert salary.signed_amount == Decimal("2000.00")

    assert refund.included is False


def test_aggregator_export_reports_missing_headers():
    with pytest.raises(ParseError) as excinfo:
        parse_statement("amount,description\n1.00,x\n")
    msg = str(excinfo.value)
    assert msg.startswith("Missing required headers:")
    assert "transaction_date" in msg and "account_number" in msg


def test_parse_statement_requires_a_data_row():
    with pytest.raises(ParseError):
        parse_statement("effective_date,amount\n")
    with pytest.raises(ParseError):
        parse_statement("")


def test_parse_statement_file_reads_csv_and_stamps_basename(tmp_path: Path):
    path = tmp_path / STATEMENT_NAME
    path.write_text(BANK_EXPORT_CSV, encoding="utf-8")

    parsed = parse_statement_file(path)

    assert parsed.format is StatementFormat.BANK_EXPORT
    assert parsed.debug is None
    assert len(parsed.transactions) == 2
    assert all(tx.source_file == STATEMENT_NAME for tx in parsed.transactions)


def test_parse_statement_file_rejects_non_utf8(tmp_path: Path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"amount,description\n\xff\xfe1.00,caf\xe9\n")
    with pytest.raises(ParseError):
        parse_statement_file(path)


def test_parse_statement_file_missing_file_raises_oserror(tmp_path: Path):
    with pytest.raises(OSError):
        parse_statement_file(tmp_path / "nope.csv")
