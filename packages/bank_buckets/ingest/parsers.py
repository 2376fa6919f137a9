"""Statement parsing entry points.

``parse_statement`` handles CSV text in either supported dialect,
``parse_pdf_pages`` handles pre-extracted PDF text, and
``parse_statement_file`` reads a file from disk and dispatches on its
extension.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum
from os import PathLike

from ..errors import ParseError
from ..logging_setup import get_logger
from ..models import Transaction
from .adapters import aggregator_export_csv, bank_export_csv, statement_pdf
from .adapters.statement_pdf import PdfDebugTrace, PdfParseResult
from .utils import normalize_header, read_csv_rows

logger = get_logger("bank_buckets.ingest.parsers")


class StatementFormat(str, Enum):
    BANK_EXPORT = "bank_export"
    AGGREGATOR_EXPORT = "aggregator_export"
    PDF = "pdf"


def detect_format(headers: Sequence[str]) -> StatementFormat:
    """Pick the CSV dialect from normalized header names.

    Bank exports have no discriminating column, so they are recognized by
    voting over their expected header names; aggregator exports are the
    default because their header validation fails loudly.
    """

    votes = sum(
        1 for expected in bank_export_csv.EXPECTED_HEADERS if any(expected in h for h in headers)
    )
    if votes >= 3:
        return StatementFormat.BANK_EXPORT
    if any("account_number" in h for h in headers):
        return StatementFormat.AGGREGATOR_EXPORT
    if any("entered" in h or "transaction_description" in h for h in headers):
        return StatementFormat.BANK_EXPORT
    return StatementFormat.AGGREGATOR_EXPORT


def parse_statement(csv_text: str, filename: str | None = None) -> list[Transaction]:
    """Parse CSV statement text into transactions.

    Raises ``ParseError`` when the text has no data rows, cannot be
    tokenized, or (aggregator exports) lacks required headers.
    """

    rows = read_csv_rows(csv_text)
    if len(rows) < 2:
        raise ParseError("CSV file must contain at least a header row and one data row")

    headers = [normalize_header(h) for h in rows[0]]
    fmt = detect_format(headers)
    logger.info("Detected CSV format: %s", fmt.value)

    if fmt is StatementFormat.BANK_EXPORT:
        return bank_export_csv.to_transactions(headers, rows[1:], filename=filename)
    return aggregator_export_csv.to_transactions(headers, rows[1:], filename=filename)


def parse_pdf_pages(
    pages: Sequence[str],
    *,
    source_file: str | None = None,
    default_year: int | None = None,
) -> PdfParseResult:
    return statement_pdf.parse_pdf_text(
        pages, source_file=source_file, default_year=default_year
    )


@dataclass(frozen=True, slots=True)
class ParsedStatement:
    """A parsed file: its records and, for PDFs, the parser's debug trace."""

    path: str
    format: StatementFormat
    transactions: list[Transaction] = field(default_factory=list)
    debug: PdfDebugTrace | None = None


def parse_statement_file(
    path: str | PathLike[str], *, default_year: int | None = None
) -> ParsedStatement:
    """Read and parse a statement file (``.pdf`` or CSV text)."""

    p = os.fspath(path)
    name = os.path.basename(p)
    if p.lower().endswith(".pdf"):
        pages = statement_pdf.extract_pdf_pages(p)
        result = parse_pdf_pages(pages, source_file=name, default_year=default_year)
        return ParsedStatement(
            path=p,
            format=StatementFormat.PDF,
            transactions=result.transactions,
            debug=result.debug,
        )

    try:
        with open(p, encoding="utf-8-sig", newline="") as f:
            text = f.read()
    except UnicodeDecodeError as exc:
        raise ParseError(f"{name} is not UTF-8 text: {exc}") from exc

    rows = read_csv_rows(text)
    fmt = (
        detect_format([normalize_header(h) for h in rows[0]])
        if rows
        else StatementFormat.AGGREGATOR_EXPORT
    )
    return ParsedStatement(path=p, format=fmt, transactions=parse_statement(text, name))


__all__ = [
    "StatementFormat",
    "ParsedStatement",
    "detect_format",
    "parse_statement",
    "parse_pdf_pages",
    "parse_statement_file",
]
