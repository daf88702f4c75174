"""Generation record model: outcome of one costed generation attempt."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from headshot_studio.core.database import Base
from headshot_studio.models._types import JSONType, new_id, utcnow


class GenerationKind(str, enum.Enum):
    """Supported generation products."""

    HEADSHOT = "headshot"
    IMAGE_EDIT = "image_edit"


class GenerationStatus(str, enum.Enum):
    """Final outcome of an attempt. Records are written after the fact."""

    COMPLETED = "completed"
    FAILED = "failed"


class GenerationRecord(Base):
    """
    Settled generation attempt.

    Exactly one record per reservation. `parameters` holds the request
    options only, never the uploaded image.
    """

    __tablename__ = "generation_records"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    account_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reservation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reservations.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )

    kind: Mapped[GenerationKind] = mapped_column(Enum(GenerationKind), nullable=False)
    parameters: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    result_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)  # null on failure
    credits_charged: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[GenerationStatus] = mapped_column(
        Enum(GenerationStatus), nullable=False, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(),
        nullable=False, index=True,
    )

    account: Mapped["Account"] = relationship("Account", back_populates="generations")

    def __repr__(self) -> str:
        return f"<GenerationRecord(id={self.id}, status={self.status.value})>"
