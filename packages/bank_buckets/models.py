"""Data models and type aliases for ``bank_buckets``.

Two families of records live here:

- Parser/merge output (``Transaction``, merge statistics, account summaries)
  are plain slotted dataclasses. ``Transaction`` is the canonical record every
  statement parser produces; it exposes documented "logical fields"
  (``match_description``, ``primary_description``, ``effective_date``,
  ``signed_amount``) so call sites never hand-roll fallback chains.
- User-maintained records (``Bucket``, ``StartingAllocation``,
  ``SavedAccount``) are pydantic models, validated whenever they are loaded
  from the store or built from CLI input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator

UNKNOWN_ACCOUNT = "unknown"
EPOCH = date(1970, 1, 1)

CreditDebit = Literal["credit", "debit"]
AccountType = Literal["savings", "day_to_day"]

type Classifications = dict[str, str]
"""Transaction id -> bucket id (manual classification mode)."""


def _to_decimal(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    if isinstance(raw, Decimal):
        return raw
    try:
        return Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None


def iso_to_date(value: str | None) -> date | None:
    """Return a ``date`` for an ISO ``YYYY-MM-DD`` string (time suffix ignored)."""

    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class Transaction:
    """A single normalized statement transaction.

    ``amount`` is signed (positive = money in) for every parser in this
    package. Aggregator exports may also carry ``credit_debit``; a ``credit``
    marker makes the row money in whatever its sign. Read
    :attr:`signed_amount` when the direction matters.
    """

    transaction_id: str
    description: str
    amount: Decimal
    transaction_date: str | None
    account_number: str = UNKNOWN_ACCOUNT
    user_description: str = ""
    posted_date: str | None = None
    account_name: str = ""
    credit_debit: str | None = None
    included: bool = True
    source: str = "csv"
    source_file: str | None = None
    currency: str | None = None
    transaction_type: str | None = None
    provider_name: str | None = None
    merchant_name: str | None = None
    budget_category: str | None = None
    category_name: str | None = None
    user_tags: str | None = None
    notes: str | None = None
    balance: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.account_number:
            self.account_number = UNKNOWN_ACCOUNT
        if not self.account_name:
            self.account_name = f"Account {self.account_number}"

    # ---- logical fields ----------------------------------------------------

    @property
    def match_description(self) -> str:
        """Text used for keyword matching and display: user text first."""

        return self.user_description or self.description or ""

    @property
    def primary_description(self) -> str:
        """Text used for duplicate detection: bank text first."""

        return self.description or self.user_description or ""

    @property
    def effective_date(self) -> date | None:
        return iso_to_date(self.transaction_date) or iso_to_date(self.posted_date)

    @property
    def sort_date(self) -> date:
        """``effective_date`` with undated rows ordered at the epoch."""

        return self.effective_date or EPOCH

    @property
    def is_credit(self) -> bool:
        """Money in: marked ``credit`` or a positive amount."""

        cd = (self.credit_debit or "").strip().lower()
        return cd == "credit" or self.amount > 0

    @property
    def signed_amount(self) -> Decimal:
        magnitude = abs(self.amount)
        return magnitude if self.is_credit else -magnitude

    # ---- (de)serialization -------------------------------------------------

    def copy(self) -> Transaction:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["amount"] = str(self.amount)
        out["balance"] = str(self.balance) if self.balance is not None else None
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Transaction:
        """Build a record from its JSON shape; unknown keys are ignored."""

        known = {f.name for f in fields(cls)}
        # Drop nulls so dataclass defaults apply.
        kwargs: dict[str, Any] = {
            k: v for k, v in data.items() if k in known and v is not None
        }
        amount = _to_decimal(data.get("amount"))
        kwargs["amount"] = amount if amount is not None else Decimal("0")
        kwargs["balance"] = _to_decimal(data.get("balance"))
        kwargs["included"] = data.get("included", True) is not False
        kwargs.setdefault("transaction_id", "")
        kwargs.setdefault("description", "")
        kwargs.setdefault("transaction_date", None)
        return cls(**kwargs)


# ---------------------------------------------------------------------------
# Merge / account aggregation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MergeStats:
    existing: int
    new: int
    unique: int
    duplicates: int
    total: int


@dataclass(frozen=True, slots=True)
class MergeResult:
    merged: list[Transaction]
    stats: MergeStats


@dataclass(frozen=True, slots=True)
class AccountSummary:
    """Per-account aggregate derived from a transaction set."""

    account_number: str
    account_name: str
    transaction_count: int
    balance: Decimal


@dataclass(frozen=True, slots=True)
class AccountSuggestion:
    """An account detected in imported data, cross-referenced with saved ones.

    ``is_saved`` is true when a saved account with the same number exists;
    ``suggested`` is its negation (the user still needs to confirm it).
    """

    account_number: str
    account_name: str
    bsb: str | None
    transaction_count: int
    balance: Decimal
    account_type: str | None
    suggested: bool
    is_saved: bool


@dataclass(frozen=True, slots=True)
class BucketSuggestion:
    name: str
    keywords: tuple[str, ...]
    match_count: int
    examples: tuple[str, ...] = field(default_factory=tuple)

    def to_bucket(self, account_number: str, *, bucket_id: str | None = None) -> Bucket:
        from .buckets import new_bucket_id

        return Bucket(
            id=bucket_id or new_bucket_id(),
            name=self.name,
            account_number=account_number,
            keywords=list(self.keywords),
        )


# ---------------------------------------------------------------------------
# User-maintained records (validated)
# ---------------------------------------------------------------------------


class Bucket(BaseModel):
    """A spending/savings category scoped to exactly one account."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    id: str
    name: str
    account_number: str
    keywords: list[str] = []

    @field_validator("id", "name", "account_number")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("must be non-empty")
        return v

    @field_validator("keywords", mode="before")
    @classmethod
    def _clean_keywords(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        return [str(k).strip() for k in v if k is not None and str(k).strip()]


class StartingAllocation(BaseModel):
    """Anchor balance for a bucket as of ``date`` (inclusive)."""

    model_config = ConfigDict(extra="ignore")

    amount: Decimal = Decimal("0")
    date: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _lenient_amount(cls, v: Any) -> Decimal:
        d = _to_decimal(v)
        return d if d is not None and d.is_finite() else Decimal("0")

    @field_validator("date", mode="before")
    @classmethod
    def _iso_date(cls, v: Any) -> str | None:
        if v is None:
            return None
        if isinstance(v, date):
            return v.isoformat()
        s = str(v).strip()
        if not s:
            return None
        d = iso_to_date(s)
        if d is None:
            raise ValueError(f"allocation date must be YYYY-MM-DD, got {v!r}")
        return d.isoformat()

    @property
    def floor(self) -> date | None:
        return iso_to_date(self.date)


class SavedAccount(BaseModel):
    """User-confirmed account metadata, keyed by account number."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    account_number: str
    account_name: str | None = None
    bsb: str | None = None
    account_type: AccountType | None = None

    @field_validator("account_number")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("account_number must be non-empty")
        return v


type StartingAllocations = Mapping[str, StartingAllocation]
"""Bucket id -> starting allocation."""


__all__ = [
    "UNKNOWN_ACCOUNT",
    "EPOCH",
    "Classifications",
    "StartingAllocations",
    "Transaction",
    "MergeStats",
    "MergeResult",
    "AccountSummary",
    "AccountSuggestion",
    "BucketSuggestion",
    "Bucket",
    "StartingAllocation",
    "SavedAccount",
    "iso_to_date",
]
