"""Append-only log of PayPal payment notifications."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, utcnow


class PaymentEvent(Base):
    """One row per payment-completed / payment-failed webhook delivery.

    Informational only: nothing here drives subscription state. Rows are
    never updated or deleted.
    """

    __tablename__ = "payment_events"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    provider_subscription_id: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )
    provider_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<PaymentEvent(id={self.id}, type={self.event_type}, "
            f"provider_id={self.provider_subscription_id})>"
        )
