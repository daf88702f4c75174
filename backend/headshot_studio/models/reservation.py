"""Reservation model: a pessimistic debit awaiting settlement."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from headshot_studio.core.database import Base
from headshot_studio.models._types import JSONType, new_id, utcnow
from headshot_studio.models.generation import GenerationKind


class ReservationStatus(str, enum.Enum):
    """Reservation states.

    State transitions (each reservation leaves PENDING exactly once):
    - PENDING -> CAPTURED (generation succeeded, debit stands)
    - PENDING -> REFUNDED (generation failed, timed out or was abandoned)
    """

    PENDING = "pending"
    CAPTURED = "captured"
    REFUNDED = "refunded"


class Reservation(Base):
    """Credits held against one generation attempt."""

    __tablename__ = "reservations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )

    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[GenerationKind] = mapped_column(Enum(GenerationKind), nullable=False)
    parameters: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus), default=ReservationStatus.PENDING, nullable=False, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
        nullable=False, index=True,
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<Reservation(id={self.id}, cost={self.cost}, "
            f"status={self.status.value})>"
        )
