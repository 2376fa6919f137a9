from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# bb_store: versioned key-value documents
# ---------------------------


class BbStoreEntry(Base):
    """One named JSON document of the bank-buckets ledger.

    Each logical collection (transactions, buckets, starting allocations, ...)
    is stored whole under its own key. ``version`` increases by one on every
    write and backs optimistic concurrency checks in the service layer.
    """

    __tablename__ = "bb_store"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.current_timestamp()
    )
