"""Exception types raised across ``bank_buckets``."""

from __future__ import annotations


class BankBucketsError(Exception):
    """Base exception for bank_buckets."""


class ParseError(BankBucketsError, ValueError):
    """A statement file could not be parsed at all.

    Fatal for the file being imported; a batch import records it and moves on
    to the next file. Individual unparseable rows never raise this.
    """


class StoreError(BankBucketsError):
    """Generic persistence failure (serialization, malformed stored payload)."""


class StoreCapacityError(StoreError):
    """A write would exceed the configured store capacity."""


class StoreConflictError(StoreError):
    """A write was attempted against a stale ``expected_version``."""


class LedgerError(BankBucketsError):
    """An API request referenced unknown data or was otherwise invalid."""


__all__ = [
    "BankBucketsError",
    "ParseError",
    "StoreError",
    "StoreCapacityError",
    "StoreConflictError",
    "LedgerError",
]
