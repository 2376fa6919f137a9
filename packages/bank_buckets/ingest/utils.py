"""Ingest utilities shared by the CSV and PDF statement adapters.

Amount/date normalization, RFC 4180 line tokenization, content-addressed
transaction ids, filename account inference, and the small description
heuristics (transaction type, merchant name) the adapters stamp on records.
"""

from __future__ import annotations

import csv
import os
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from io import StringIO

from ..errors import ParseError

DEFAULT_CURRENCY = "AUD"
DEFAULT_PROVIDER = "Qudos Bank"


def default_currency() -> str:
    return (os.getenv("BANK_BUCKETS_CURRENCY") or "").strip() or DEFAULT_CURRENCY


def default_provider() -> str:
    return (os.getenv("BANK_BUCKETS_PROVIDER") or "").strip() or DEFAULT_PROVIDER


# ---------------------------------------------------------------------------
# Tokenization
# ---------------------------------------------------------------------------


def read_csv_rows(csv_text: str) -> list[list[str]]:
    """Tokenize CSV text into rows, dropping blank rows.

    Quoting follows RFC 4180 via the stdlib :mod:`csv` reader: double-quoted
    fields, ``""`` as an escaped quote, delimiters and newlines inside quotes
    preserved.
    """

    text = csv_text.lstrip("\ufeff").strip()
    try:
        with StringIO(text, newline="") as f:
            rows = [row for row in csv.reader(f) if any(cell.strip() for cell in row)]
    except csv.Error as exc:
        raise ParseError(f"CSV could not be tokenized: {exc}") from exc
    return rows


def tokenize_line(line: str) -> list[str]:
    """Split a single CSV line into fields (quote-aware)."""

    try:
        return next(csv.reader([line]), [])
    except csv.Error as exc:
        raise ParseError(f"CSV line could not be tokenized: {exc}") from exc


def normalize_header(name: str) -> str:
    """Trim, lowercase, and turn whitespace runs into underscores."""

    return re.sub(r"\s+", "_", name.strip().lower())


# ---------------------------------------------------------------------------
# Amounts and dates
# ---------------------------------------------------------------------------


def parse_amount(value: str | None) -> Decimal | None:
    """Parse ``$1,234.56`` / ``-$1,234.56`` style amounts.

    The magnitude keeps only digits and ``.``; a ``-`` anywhere in the raw
    token makes the result negative. Returns ``None`` (not zero) when nothing
    numeric remains.
    """

    if not value:
        return None
    negative = "-" in value
    cleaned = re.sub(r"[^\d.]", "", value)
    if not cleaned:
        return None
    try:
        d = Decimal(cleaned)
    except InvalidOperation:
        return None
    return -d if negative else d


_DMY_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")

# Generic fallbacks tried in order after the day-first pattern.
_FALLBACK_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%d %b %Y",
    "%d %B %Y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d-%b-%Y",
)


def parse_date_dmy(value: str | None) -> str | None:
    """Return ISO ``YYYY-MM-DD`` for a ``D/M/YYYY`` date, else ``None``."""

    if not value:
        return None
    m = _DMY_RE.search(value)
    if not m:
        return None
    day, month, year = int(m.group(1)), int(m.group(2)), int(m.group(3))
    try:
        return datetime(year, month, day).date().isoformat()
    except ValueError:
        return None


def parse_date(value: str | None) -> str | None:
    """Day-first ``D/M/YYYY`` first, then a fixed list of generic formats."""

    if not value:
        return None
    s = value.strip()
    if not s:
        return None
    iso = parse_date_dmy(s)
    if iso:
        return iso
    for fmt in _FALLBACK_DATE_FORMATS:
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    # Trailing timezone / fractional seconds on ISO timestamps
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


def format_amount(amount: Decimal) -> str:
    """Canonical string form used in ids: two decimals, leading minus."""

    return f"{amount.quantize(Decimal('0.01')):.2f}"


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def _hash32(text: str) -> int:
    # h = h * 31 + unit over UTF-16 code units, wrapped to a signed 32-bit int
    data = text.encode("utf-16-le")
    h = 0
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    return h - 0x100000000 if h & 0x80000000 else h


def generate_transaction_id(
    date: str | None, description: str, amount: Decimal, account_number: str
) -> str:
    """Content-addressed id over ``{date}-{description}-{amount}-{account}``.

    Identical field values always yield the same id; collisions across
    different values are possible (32-bit hash) and tolerated.
    """

    key = f"{date or ''}-{description}-{format_amount(amount)}-{account_number}"
    return f"tx_{abs(_hash32(key))}"


_STATEMENT_ACCOUNT_RE = re.compile(r"Statement_(\d{8,10})_", re.IGNORECASE)
_ANY_ACCOUNT_RE = re.compile(r"(\d{8,10})")


def extract_account_number_from_filename(filename: str | None) -> str | None:
    """Infer an account number from ``Statement_<8-10 digits>_...`` names.

    Falls back to the first 8–10 digit run anywhere in the name.
    """

    if not filename:
        return None
    name = os.path.basename(filename)
    m = _STATEMENT_ACCOUNT_RE.search(name) or _ANY_ACCOUNT_RE.search(name)
    return m.group(1) if m else None


# ---------------------------------------------------------------------------
# Description heuristics
# ---------------------------------------------------------------------------


def infer_transaction_type(description: str) -> str:
    """Classify a bank-export description into a coarse transaction type."""

    desc = description.lower()
    if "external transfer" in desc:
        return "external_transfer"
    if "transfer" in desc:
        return "transfer"
    if "direct debit" in desc:
        return "direct_debit"
    if "bpay" in desc:
        return "bpay"
    if "payto" in desc:
        return "payto"
    if "interest" in desc:
        return "interest"
    return "other"


_DIRECT_DEBIT_RE = re.compile(r"Direct Debit\s+([^-]+)", re.IGNORECASE)
_PAYTO_RE = re.compile(r"PayTo:\s+(.+?)(?:\s+Reference:|$)", re.IGNORECASE)
_BPAY_RE = re.compile(r"Bpay\s+\S+\s+to\s+([^\d]+)", re.IGNORECASE)
_VISA_RE = re.compile(r"visa-([^(]+)", re.IGNORECASE)


def extract_merchant_name(description: str) -> str:
    """Best-effort payee extraction; returns the description when unknown."""

    for pattern in (_DIRECT_DEBIT_RE, _PAYTO_RE, _BPAY_RE, _VISA_RE):
        m = pattern.search(description)
        if m and m.group(1).strip():
            return m.group(1).strip()
    return description


__all__ = [
    "DEFAULT_CURRENCY",
    "DEFAULT_PROVIDER",
    "default_currency",
    "default_provider",
    "read_csv_rows",
    "tokenize_line",
    "normalize_header",
    "parse_amount",
    "parse_date",
    "parse_date_dmy",
    "format_amount",
    "generate_transaction_id",
    "extract_account_number_from_filename",
    "infer_transaction_type",
    "extract_merchant_name",
]
