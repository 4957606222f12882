"""Subscription model — one PayPal billing relationship per profile."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, String, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

SUBSCRIPTION_STATUSES: tuple[str, ...] = (
    "pending_approval",
    "approved",
    "active",
    "trial",
    "suspended",
    "cancelled",
    "expired",
)

# A row in one of these states is never moved back to a live state in place.
TERMINAL_STATUSES: frozenset[str] = frozenset({"cancelled", "expired"})


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Local record of a user's subscription, reconciled from PayPal webhooks."""

    __tablename__ = "subscriptions"

    # One row per user (UNIQUE is also the upsert conflict target)
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True,
    )

    # Internal plan key (see app.billing.plans), not the PayPal plan id
    plan_id: Mapped[str] = mapped_column(String(50), nullable=False)

    # Join key for webhook reconciliation; set once PayPal confirms creation
    provider_subscription_id: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )

    status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending_approval")

    # Period bookkeeping
    start_date: Mapped[datetime | None] = mapped_column(nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    trial_end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    has_used_trial: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    profile: Mapped["Profile"] = relationship(back_populates="subscription", lazy="selectin")  # type: ignore[name-defined]  # noqa: F821

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Subscription(id={self.id}, user_id={self.user_id}, "
            f"provider_id={self.provider_subscription_id}, status={self.status})>"
        )
