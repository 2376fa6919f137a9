"""Statement ingestion: CSV dialect detection, PDF text heuristics, shared utils."""

from .parsers import (
    ParsedStatement,
    StatementFormat,
    detect_format,
    parse_pdf_pages,
    parse_statement,
    parse_statement_file,
)
from .utils import generate_transaction_id, parse_amount, parse_date, tokenize_line

__all__ = [
    "ParsedStatement",
    "StatementFormat",
    "detect_format",
    "parse_pdf_pages",
    "parse_statement",
    "parse_statement_file",
    "generate_transaction_id",
    "parse_amount",
    "parse_date",
    "tokenize_line",
]
