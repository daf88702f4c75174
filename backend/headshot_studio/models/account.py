"""Account model: the unit of credit ownership, one per registered user."""

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from headshot_studio.core.database import Base
from headshot_studio.models._types import new_id, utcnow


class Account(Base):
    """
    Registered user together with the authoritative credit balance.

    `balance` is only ever changed by CreditLedger through a conditional
    UPDATE, paired with a LedgerEntry in the same transaction.
    """

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_accounts_balance_non_negative"),
        CheckConstraint(
            "total_credits_purchased >= 0",
            name="ck_accounts_total_purchased_non_negative",
        ),
    )

    # Opaque identifier handed out by the auth layer
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Profile / credentials
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[str] = mapped_column(String(255), default="", nullable=False)

    # Credits
    balance: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_credits_purchased: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=utcnow, nullable=True
    )

    # Relationships
    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(
        "LedgerEntry", back_populates="account", cascade="all, delete-orphan"
    )
    generations: Mapped[list["GenerationRecord"]] = relationship(
        "GenerationRecord", back_populates="account", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Account(id={self.id}, email={self.email}, balance={self.balance})>"
