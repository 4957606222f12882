"""Subscription service — persistence for subscription rows and payment events."""

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import dialect_insert, utcnow
from app.models.payment_event import PaymentEvent
from app.models.subscription import Subscription

logger = logging.getLogger(__name__)


async def get_subscription_for_user(
    db: AsyncSession, user_id: uuid.UUID
) -> Subscription | None:
    """Return the user's subscription row, if any."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_owned_subscription(
    db: AsyncSession, subscription_id: uuid.UUID, user_id: uuid.UUID
) -> Subscription | None:
    """Look up a row by id AND owner. A row owned by someone else is simply not found."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.id == subscription_id,
            Subscription.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def get_subscription_by_provider_id(
    db: AsyncSession, provider_subscription_id: str
) -> Subscription | None:
    """Look up subscription by PayPal subscription ID (used by webhooks)."""
    result = await db.execute(
        select(Subscription).where(
            Subscription.provider_subscription_id == provider_subscription_id
        )
    )
    return result.scalar_one_or_none()


async def list_subscriptions(db: AsyncSession) -> list[Subscription]:
    """All subscription rows, newest first (admin view)."""
    result = await db.execute(select(Subscription).order_by(Subscription.created_at.desc()))
    return list(result.scalars().all())


async def upsert_pending_subscription(
    db: AsyncSession,
    user_id: uuid.UUID,
    plan_id: str,
    provider_subscription_id: str,
) -> Subscription:
    """Insert or replace the user's row as ``pending_approval``.

    Conflict target is ``user_id``: subscribing again before approving
    replaces the earlier pending row and resets its period bookkeeping.
    """
    now = utcnow()
    values = {
        "plan_id": plan_id,
        "provider_subscription_id": provider_subscription_id,
        "status": "pending_approval",
        "start_date": None,
        "end_date": None,
        "trial_end_date": None,
        "cancel_at_period_end": False,
        "updated_at": now,
    }
    stmt = dialect_insert(db, Subscription).values(
        id=uuid.uuid4(),
        user_id=user_id,
        has_used_trial=False,
        created_at=now,
        **values,
    )
    stmt = stmt.on_conflict_do_update(index_elements=["user_id"], set_=values)
    await db.execute(stmt)

    subscription = await get_subscription_for_user(db, user_id)
    logger.info(
        "Upserted pending subscription %s for user %s (PayPal %s)",
        subscription.id,
        user_id,
        provider_subscription_id,
    )
    return subscription


async def mark_cancelled(db: AsyncSession, subscription: Subscription) -> Subscription:
    """Flip a row to cancelled; access persists until the paid period ends."""
    subscription.status = "cancelled"
    subscription.cancel_at_period_end = True
    subscription.updated_at = utcnow()
    await db.flush()
    logger.info(
        "Cancelled subscription %s (user %s)", subscription.id, subscription.user_id
    )
    return subscription


async def apply_provider_status(
    db: AsyncSession,
    subscription: Subscription,
    status: str,
    *,
    plan_id: str | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
) -> Subscription:
    """Write a webhook-reported status onto the row (last write wins).

    ``start_date`` / ``end_date`` only overwrite when given, so replaying the
    same event leaves the row unchanged.
    """
    subscription.status = status
    if plan_id is not None:
        subscription.plan_id = plan_id
    if start_date is not None:
        subscription.start_date = start_date
    if end_date is not None:
        subscription.end_date = end_date
    if status == "active" and subscription.start_date is None:
        subscription.start_date = utcnow()
    await db.flush()
    logger.info(
        "Updated subscription %s (PayPal %s): status=%s",
        subscription.id,
        subscription.provider_subscription_id,
        status,
    )
    return subscription


async def record_payment_event(
    db: AsyncSession,
    *,
    event_type: str,
    payload: dict[str, Any],
    provider_subscription_id: str | None,
    provider_event_id: str | None,
) -> PaymentEvent:
    """Append a payment notification to the audit log."""
    entry = PaymentEvent(
        provider_subscription_id=provider_subscription_id,
        provider_event_id=provider_event_id,
        event_type=event_type,
        payload=payload,
    )
    db.add(entry)
    await db.flush()
    logger.info(
        "Logged %s for PayPal subscription %s (event %s)",
        event_type,
        provider_subscription_id,
        provider_event_id,
    )
    return entry
