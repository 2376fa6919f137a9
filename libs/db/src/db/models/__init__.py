"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the key-value ledger store used by ``bank_buckets``.
"""

from .ledger import Base, BbStoreEntry

__all__ = [
    "Base",
    "BbStoreEntry",
]
