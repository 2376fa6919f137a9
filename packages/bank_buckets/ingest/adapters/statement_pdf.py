"""Heuristic parser for text extracted from PDF bank statements.

The parser works on per-page text (one string per page, lines separated by
``\\n``) as produced by :func:`extract_pdf_pages`, in layers:

1. an "Account Summary" block yields the statement's known accounts;
2. the text is split into per-account sections at lines that carry a known
   account number next to an ``AC No:`` / ``Account No.`` / ``Account Number``
   label (without a summary, any ``AC No: <digits>`` line starts a section);
3. each section is scanned for dated lines, which start a transaction, and
   continuation lines, which extend its description until the next dated line
   or a ``Page N of M`` footer;
4. when no section produced anything, an aggressive line scan over the whole
   document picks up every line holding both a date and an amount.

Zero transactions is a valid outcome; callers get an empty list plus a
:class:`PdfDebugTrace` describing what was found along the way.
"""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import asdict, dataclass, field
from datetime import date
from decimal import Decimal
from os import PathLike

from ...errors import ParseError
from ...logging_setup import get_logger
from ...models import UNKNOWN_ACCOUNT, Transaction
from ..utils import (
    default_currency,
    default_provider,
    extract_merchant_name,
    generate_transaction_id,
)

logger = get_logger("bank_buckets.ingest.statement_pdf")

_SUMMARY_START_RE = re.compile(r"account\s+summary", re.IGNORECASE)
_SUMMARY_END_RE = re.compile(r"posting\s+effective", re.IGNORECASE)
_SUMMARY_ROW_RE = re.compile(
    r"([A-Z]{2,3})\s*\|?\s*(\d{8,10})\s*\|?\s*([^|]+?)(?:\s*\|?\s*\$[\d,]+\.\d{2})?$"
)
_ACCOUNT_LABEL_RE = re.compile(r"AC No:|Account No\.|Account Number", re.IGNORECASE)
_AC_NO_RE = re.compile(r"AC No:\s*(\d{8,10})", re.IGNORECASE)

_YEAR_HINT_RES = (
    re.compile(r"statement\s+begins\s+.*?(\d{4})", re.IGNORECASE),
    re.compile(r"period\s+.*?(\d{4})", re.IGNORECASE),
    re.compile(r"date\s+.*?(\d{4})", re.IGNORECASE),
)
_ANY_YEAR_RE = re.compile(r"\b(20\d{2})\b")
_HEADER_CONTEXT_CHARS = 1000

_TABLE_HEADER_RES = (
    re.compile(r"date\s*\|.*balance", re.IGNORECASE),
    re.compile(
        r"date\s+.*(?:description|details|transaction)\s+.*"
        r"(debit|credit|amount|withdrawal|deposit)",
        re.IGNORECASE,
    ),
)
_PAGE_FOOTER_RE = re.compile(r"^page\s+\d+\s+of\s+\d+$", re.IGNORECASE)
_PAGE_MARK_RE = re.compile(r"page\s+\d+", re.IGNORECASE)

_LINE_DATE_RE = re.compile(r"^(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}|\d{1,2}\s+[a-zA-Z]{3})")
_AMOUNT_RE = re.compile(r"-?\$?([\d,]+\.\d{2})")
_TRAILING_AMOUNT_RE = re.compile(r"\|?\s*-?\$?[\d,]+\.\d{2}.*$")
_NUMERIC_DATE_RE = re.compile(r"(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})")
_DAY_MONTH_RE = re.compile(r"(\d{1,2})\s+([a-zA-Z]{3})")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

CREDIT_KEYWORDS: tuple[str, ...] = ("payment from", "deposit", "transfer from", "interest")
DEBIT_KEYWORDS: tuple[str, ...] = (
    "purchase",
    "payment to",
    "transfer to",
    "withdrawal",
    "loan payment",
    "debit",
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SummaryAccount:
    type: str
    number: str
    name: str


@dataclass(slots=True)
class StatementSection:
    account_number: str
    account_name: str
    lines: list[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(slots=True)
class PdfDebugTrace:
    accounts: list[SummaryAccount] = field(default_factory=list)
    sections: list[StatementSection] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    used_fallback: bool = False

    def format(self) -> str:
        """Render the trace the way it is written to the import log."""

        accounts = json.dumps([asdict(a) for a in self.accounts])
        lines = [
            "Debug Log:",
            f"Accounts: {accounts}",
            f"Sections: {len(self.sections)}",
        ]
        for s in self.sections:
            lines.append(f"  - {s.account_number} ({s.account_name}): {len(s.lines)} lines")
        lines.append(f"Transactions: {len(self.transactions)}")
        if self.used_fallback:
            lines.append("Fallback: aggressive line scan")
        return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class PdfParseResult:
    transactions: list[Transaction]
    debug: PdfDebugTrace


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def extract_summary_accounts(lines: Sequence[str]) -> list[SummaryAccount]:
    """Collect ``(type, number, name)`` rows from the "Account Summary" block."""

    accounts: list[SummaryAccount] = []
    in_summary = False
    for line in lines:
        if _SUMMARY_START_RE.search(line):
            in_summary = True
            continue
        if not in_summary or not line.strip():
            continue
        if _SUMMARY_END_RE.search(line):
            break
        m = _SUMMARY_ROW_RE.search(line.rstrip())
        if m:
            accounts.append(
                SummaryAccount(type=m.group(1), number=m.group(2), name=m.group(3).strip())
            )
    return accounts


def split_into_sections(
    lines: Sequence[str], known_accounts: Sequence[SummaryAccount]
) -> list[StatementSection]:
    """Split document lines into per-account sections.

    Text before the first account header belongs to no section and is
    dropped.
    """

    sections: list[StatementSection] = []
    current: StatementSection | None = None

    for line in lines:
        found: tuple[str, str] | None = None
        if known_accounts:
            if _ACCOUNT_LABEL_RE.search(line):
                for acc in known_accounts:
                    if acc.number in line:
                        found = (acc.number, acc.name)
                        break
        else:
            m = _AC_NO_RE.search(line)
            if m:
                found = (m.group(1), f"Account {m.group(1)}")

        if found:
            if current is not None:
                sections.append(current)
            current = StatementSection(account_number=found[0], account_name=found[1], lines=[line])
        elif current is not None:
            current.lines.append(line)

    if current is not None:
        sections.append(current)
    return sections


def detect_statement_year(text: str, default_year: int | None = None) -> int:
    """Find the statement year in the leading header context of ``text``."""

    header = text[:_HEADER_CONTEXT_CHARS]
    for pattern in _YEAR_HINT_RES:
        m = pattern.search(header)
        if m:
            y = int(m.group(1))
            if 2000 <= y <= 2100:
                return y
            break
    else:
        m = _ANY_YEAR_RE.search(header)
        if m:
            return int(m.group(1))
    return default_year or date.today().year


def parse_statement_date(token: str, year: int) -> str | None:
    """Parse ``D/M/YY[YY]`` (``/``, ``-`` or ``.``) or ``D Mon`` into ISO."""

    m = _NUMERIC_DATE_RE.search(token)
    if m:
        day, month, y = int(m.group(1)), int(m.group(2)), int(m.group(3))
        if y < 100:
            y += 2000
    else:
        m = _DAY_MONTH_RE.search(token)
        if not m:
            return None
        month_num = _MONTHS.get(m.group(2).lower())
        if month_num is None:
            return None
        day, month, y = int(m.group(1)), month_num, year
    try:
        return date(y, month, day).isoformat()
    except ValueError:
        return None


def infer_signed_amount(line: str, token: str, magnitude: Decimal) -> Decimal:
    """Apply the statement sign heuristics to an unsigned amount.

    A leading ``-`` on the matched token wins, then credit keywords, then
    debit keywords; anything else is treated as money out.
    """

    if token.startswith("-"):
        return -magnitude
    lower = line.lower()
    if any(k in lower for k in CREDIT_KEYWORDS):
        return magnitude
    if any(k in lower for k in DEBIT_KEYWORDS):
        return -magnitude
    return -magnitude


def infer_pdf_transaction_type(description: str) -> str:
    desc = description.lower()
    for kind in ("transfer", "purchase", "payment", "deposit", "withdrawal", "interest", "fee"):
        if kind in desc:
            return kind
    return "unknown"


def _clean_description(remainder: str) -> str:
    desc = _TRAILING_AMOUNT_RE.sub("", remainder.strip()).strip()
    return desc.strip("|").strip()


def _match_dated_line(line: str) -> tuple[re.Match[str], str, re.Match[str] | None] | None:
    stripped = line.strip()
    m = _LINE_DATE_RE.match(stripped)
    if not m:
        return None
    remainder = stripped[m.end():]
    return m, remainder, _AMOUNT_RE.search(remainder)


def _finalize(
    *,
    tx_date: str | None,
    description: str,
    amount: Decimal,
    account_number: str | None,
    account_name: str | None,
    source_file: str | None,
) -> Transaction:
    desc = description or "Transaction"
    account = account_number or UNKNOWN_ACCOUNT
    return Transaction(
        transaction_id=generate_transaction_id(tx_date, desc, amount, account),
        description=desc,
        user_description=desc,
        amount=amount,
        currency=default_currency(),
        transaction_date=tx_date,
        posted_date=tx_date,
        account_number=account,
        account_name=account_name or "",
        credit_debit="credit" if amount >= 0 else "debit",
        transaction_type=infer_pdf_transaction_type(desc),
        provider_name=default_provider(),
        merchant_name=extract_merchant_name(desc),
        included=True,
        source="pdf",
        source_file=source_file,
    )


def parse_section(
    section: StatementSection,
    *,
    default_year: int | None = None,
    source_file: str | None = None,
) -> list[Transaction]:
    """Parse the transaction table(s) inside one account section."""

    year = detect_statement_year(section.text, default_year)
    out: list[Transaction] = []
    in_table = False
    pending: dict | None = None
    desc_parts: list[str] = []

    def flush() -> None:
        nonlocal pending
        if pending is not None:
            out.append(
                _finalize(
                    description=" ".join(desc_parts).strip(),
                    account_number=section.account_number,
                    account_name=section.account_name,
                    source_file=source_file,
                    **pending,
                )
            )
            pending = None

    for line in section.lines:
        if any(p.search(line) for p in _TABLE_HEADER_RES):
            in_table = True
            continue

        if _PAGE_FOOTER_RE.match(line.strip()):
            in_table = False
            flush()
            continue

        dated = _match_dated_line(line)
        if dated is not None and (in_table or dated[2] is not None):
            flush()
            date_match, remainder, amount_match = dated
            amount = Decimal("0")
            if amount_match is not None:
                magnitude = Decimal(amount_match.group(1).replace(",", ""))
                amount = infer_signed_amount(line, amount_match.group(0), magnitude)
            pending = {
                "tx_date": parse_statement_date(date_match.group(1), year),
                "amount": amount,
            }
            desc_parts = [_clean_description(remainder)]
        elif pending is not None:
            text = line.strip()
            if text and "$" not in text and not _PAGE_MARK_RE.search(text):
                desc_parts.append(text)

    flush()
    return out


def aggressive_scan(
    lines: Sequence[str],
    account_number: str | None,
    *,
    default_year: int | None = None,
    source_file: str | None = None,
) -> list[Transaction]:
    """Take every line carrying both a leading date and an amount."""

    year = detect_statement_year("\n".join(lines), default_year)
    out: list[Transaction] = []
    for line in lines:
        dated = _match_dated_line(line)
        if dated is None or dated[2] is None:
            continue
        date_match, remainder, amount_match = dated
        magnitude = Decimal(amount_match.group(1).replace(",", ""))
        out.append(
            _finalize(
                tx_date=parse_statement_date(date_match.group(1), year),
                description=_clean_description(remainder),
                amount=infer_signed_amount(line, amount_match.group(0), magnitude),
                account_number=account_number,
                account_name=None,
                source_file=source_file,
            )
        )
    return out


def parse_pdf_text(
    pages: Sequence[str],
    *,
    source_file: str | None = None,
    default_year: int | None = None,
) -> PdfParseResult:
    """Parse extracted statement text into transactions plus a debug trace.

    Parameters
    ----------
    pages:
        Extracted text, one string per page.
    source_file:
        Original filename, stamped onto every record.
    default_year:
        Year for ``D Mon`` dates when the statement header names none.
        Defaults to the current year.
    """

    text = "\n\n".join(pages)
    lines = text.split("\n")
    trace = PdfDebugTrace()

    trace.accounts = extract_summary_accounts(lines)
    trace.sections = split_into_sections(lines, trace.accounts)

    transactions: list[Transaction] = []
    for section in trace.sections:
        transactions.extend(
            parse_section(section, default_year=default_year, source_file=source_file)
        )

    if not transactions:
        logger.info("No transactions found via sections; trying aggressive line scan")
        fallback_account = (
            trace.accounts[0].number if trace.sections and trace.accounts else None
        )
        transactions = aggressive_scan(
            lines, fallback_account, default_year=default_year, source_file=source_file
        )
        trace.used_fallback = True

    trace.transactions = transactions
    logger.debug("%s", trace.format())
    return PdfParseResult(transactions=transactions, debug=trace)


def extract_pdf_pages(path: str | PathLike[str]) -> list[str]:
    """Extract per-page text from a PDF with ``pdfplumber``.

    Raises ``OSError`` for unreadable files and ``ParseError`` when the
    document itself cannot be decoded.
    """

    import pdfplumber

    try:
        with pdfplumber.open(path) as pdf:
            return [page.extract_text() or "" for page in pdf.pages]
    except OSError:
        raise
    except Exception as exc:  # pdfminer raises a family of unrelated types
        raise ParseError(f"PDF text extraction failed for {path}: {exc}") from exc


__all__ = [
    "CREDIT_KEYWORDS",
    "DEBIT_KEYWORDS",
    "SummaryAccount",
    "StatementSection",
    "PdfDebugTrace",
    "PdfParseResult",
    "extract_summary_accounts",
    "split_into_sections",
    "detect_statement_year",
    "parse_statement_date",
    "infer_signed_amount",
    "parse_section",
    "aggressive_scan",
    "parse_pdf_text",
    "extract_pdf_pages",
]
