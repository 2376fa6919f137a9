from __future__ import annotations

from decimal import Decimal

from bank_buckets.ingest.adapters.statement_pdf import (
    SummaryAccount,
    detect_statement_year,
    extract_summary_accounts,
    infer_signed_amount,
    parse_statement_date,
    split_into_sections,
)
from bank_buckets.ingest.parsers import parse_pdf_pages

STATEMENT_PAGE = "\n".join(
    [
        "Statement begins 1 January 2024",
        "Account Summary",
        "SAV 12345678 Everyday Account $1,000.00",
        "Posting Effective Transaction Details",
        "AC No: 12345678 Everyday Account",
        "Date Description Amount Balance",
        "03 Jan Purchase Woolworths 45.50 954.50",
        "Card 1234",
        "05 Jan Payment from Employer 2,000.00 2,954.50",
        "Page 1 of 1",
        "",
    ]
)


def test_summary_block_yields_known_accounts():
    accounts = extract_summary_accounts(STATEMENT_PAGE.split("\n"))
    assert accounts == [SummaryAccount(type="SAV", number="12345678", name="Everyday Account")]


def test_sections_start_at_labelled_account_lines():
    lines = STATEMENT_PAGE.split("\n")
    sections = split_into_sections(lines, extract_summary_accounts(lines))
    assert len(sections) == 1
    assert sections[0].account_number == "12345678"
    assert sections[0].account_name == "Everyday Account"
    assert sections[0].lines[0].startswith("AC No:")


def test_sections_without_summary_use_ac_no_lines():
    lines = ["AC No: 11112222 ", "01/02/2024 Deposit 10.00", "AC No: 33334444", "x"]
    sections = split_into_sections(lines, [])
    assert [s.account_number for s in sections] == ["11112222", "33334444"]
    assert sections[0].account_name == "Account 11112222"


def test_structured_parse_with_continuation_lines():
    result = parse_pdf_pages([STATEMENT_PAGE], source_file="jan.pdf", default_year=2024)

    assert not result.debug.used_fallback
    txs = result.transactions
    assert len(txs) == 2
    purchase, payment = txs
    assert purchase.transaction_date == "2024-01-03"
    assert purchase.description == "Purchase Woolworths Card 1234"
    assert purchase.amount == Decimal("-45.50")
    assert purchase.credit_debit == "debit"
    assert purchase.account_number == "12345678"
    assert purchase.account_name == "Everyday Account"
    assert purchase.source == "pdf"
    assert purchase.source_file == "jan.pdf"
    assert payment.amount == Decimal("2000.00")
    assert payment.credit_debit == "credit"

    log = result.debug.format()
    assert log.startswith("Debug Log:")
    assert "Sections: 1" in log
    assert "Transactions: 2" in log


def test_aggressive_scan_fallback_when_no_sections():
    page = "Some Bank\n15/01/2024 Coffee shop $4.50\nrandom line\n16/01/2024 Deposit salary $100.00"
    result = parse_pdf_pages([page])

    assert result.debug.used_fallback
    assert "Fallback: aggressive line scan" in result.debug.format()
    amounts = [tx.amount for tx in result.transactions]
    # No sign evidence defaults to money out; "deposit" marks money in
    assert amounts == [Decimal("-4.50"), Decimal("100.00")]
    assert [tx.description for tx in result.transactions] == ["Coffee shop", "Deposit salary"]
    assert {tx.account_number for tx in result.transactions} == {"unknown"}


def test_empty_document_is_not_an_error():
    result = parse_pdf_pages(["nothing to see here"])
    assert result.transactions == []
    assert result.debug.used_fallback


def test_detect_statement_year_prefers_header_hints():
    assert detect_statement_year("Statement begins 1 January 2023\n...") == 2023
    assert detect_statement_year("no hints at all", default_year=2019) == 2019


def test_parse_statement_date_formats():
    assert parse_statement_date("03 Jan", 2024) == "2024-01-03"
    assert parse_statement_date("15/01/24", 2000) == "2024-01-15"
    assert parse_statement_date("15-01-2024", 2000) == "2024-01-15"
    assert parse_statement_date("31 Feb", 2024) is None
    assert parse_statement_date("5 Foo", 2024) is None


def test_infer_signed_amount_precedence():
    ten = Decimal("10.00")
    assert infer_signed_amount("Deposit -10.00", "-10.00", ten) == -ten
    assert infer_signed_amount("Interest paid 10.00", "10.00", ten) == ten
    assert infer_signed_amount("Withdrawal ATM 10.00", "10.00", ten) == -ten
    assert infer_signed_amount("Something 10.00", "10.00", ten) == -ten
