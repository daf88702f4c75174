"""Ledger entry model: append-only log of balance changes."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from headshot_studio.core.database import Base
from headshot_studio.models._types import utcnow


class LedgerCategory(str, enum.Enum):
    """Why a balance changed."""

    PURCHASE = "purchase"  # Credits bought (Stripe or mock)
    USAGE = "usage"  # Reservation for a costed generation
    BONUS = "bonus"  # Signup bonus or admin grant
    REFUND = "refund"  # Reversal of a failed generation's reservation


class LedgerEntry(Base):
    """
    Immutable record of one balance change.

    This table is append-only. Never UPDATE or DELETE records. Summing
    `delta` over an account's entries yields its current balance.
    """

    __tablename__ = "ledger_entries"

    # Autoincrement id doubles as insertion order
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    delta: Mapped[int] = mapped_column(Integer, nullable=False)  # positive = credit
    category: Mapped[LedgerCategory] = mapped_column(
        Enum(LedgerCategory), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Stripe event id for purchases; unique so a webhook can't grant twice
    external_ref: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True
    )
    reservation_id: Mapped[Optional[str]] = mapped_column(
        String(36), nullable=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    account: Mapped["Account"] = relationship("Account", back_populates="ledger_entries")

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry(id={self.id}, category={self.category.value}, "
            f"delta={self.delta})>"
        )
