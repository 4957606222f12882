"""PayPal webhook handling — verify transmissions and reconcile subscription state."""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.billing import paypal_client
from app.billing.plans import get_plan_by_paypal_id
from app.errors import ProviderError, ProviderNotConfigured
from app.models.subscription import TERMINAL_STATUSES, Subscription
from app.schemas.paypal import (
    PAYMENT_EVENT_TYPES,
    PaymentNotification,
    ProviderSubscriptionResource,
    SubscriptionLifecycleEvent,
    WebhookEvent,
)
from app.services.subscription_service import (
    apply_provider_status,
    get_subscription_by_provider_id,
    record_payment_event,
)

logger = logging.getLogger(__name__)

# PayPal subscription status -> local Subscription.status
PROVIDER_STATUS_MAP: dict[str, str] = {
    "APPROVAL_PENDING": "pending_approval",
    "APPROVED": "approved",
    "ACTIVE": "active",
    "SUSPENDED": "suspended",
    "CANCELLED": "cancelled",
    "EXPIRED": "expired",
}


def _to_naive(dt: datetime | None) -> datetime | None:
    """Convert a provider timestamp to naive UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


async def verify_transmission(headers: Mapping[str, str], raw_body: bytes) -> bool:
    """Check a webhook's signature with PayPal using the configured credentials.

    Any configuration or token problem counts as a failed verification.
    """
    try:
        creds = paypal_client.paypal_credentials()
        token = await paypal_client.get_access_token(
            creds.client_id, creds.client_secret, creds.api_base
        )
    except (ProviderError, ProviderNotConfigured):
        logger.error("Cannot obtain PayPal token for webhook verification")
        return False

    return await paypal_client.verify_webhook_signature(
        headers, raw_body, creds.webhook_id, token, creds.api_base
    )


async def apply_subscription_resource(
    db: AsyncSession,
    subscription: Subscription,
    resource: ProviderSubscriptionResource,
) -> bool:
    """Map a provider resource onto the local row. Returns True if the row was written.

    Unknown provider statuses are ignored. A row that has moved past
    ``pending_approval`` is never sent back to it, and a cancelled/expired row
    is never moved back to a live status in place.
    """
    local_status = PROVIDER_STATUS_MAP.get(resource.status or "")
    if local_status is None:
        logger.warning(
            "Unhandled PayPal subscription status %r for %s; not updating",
            resource.status,
            resource.id,
        )
        return False

    # pending_approval is written by creation; a late CREATED delivery only confirms it
    if local_status == "pending_approval" and subscription.status != "pending_approval":
        logger.info(
            "Ignoring %s for PayPal subscription %s: local row %s is already %s",
            resource.status,
            resource.id,
            subscription.id,
            subscription.status,
        )
        return False

    if subscription.status in TERMINAL_STATUSES and local_status not in TERMINAL_STATUSES:
        logger.warning(
            "Ignoring %s for PayPal subscription %s: local row %s is already %s",
            resource.status,
            resource.id,
            subscription.id,
            subscription.status,
        )
        return False

    start_date = end_date = None
    if local_status == "active":
        if subscription.start_date is None:
            start_date = _to_naive(resource.start_time)
        if resource.billing_info is not None:
            end_date = _to_naive(resource.billing_info.next_billing_time)

    plan_id = get_plan_by_paypal_id(resource.plan_id) if resource.plan_id else None

    await apply_provider_status(
        db,
        subscription,
        local_status,
        plan_id=plan_id,
        start_date=start_date,
        end_date=end_date,
    )
    return True


async def handle_subscription_event(
    db: AsyncSession, event: SubscriptionLifecycleEvent
) -> None:
    """Handle BILLING.SUBSCRIPTION.* — sync status and period from the resource."""
    resource = event.resource

    if resource.status is None:
        logger.warning(
            "Webhook %s (%s) has no subscription status; skipping",
            event.id,
            event.event_type,
        )
        return

    subscription = await get_subscription_by_provider_id(db, resource.id)
    if subscription is None:
        # Expected when the local write after creation failed; needs manual reconciliation
        logger.warning(
            "Orphan webhook %s (%s): no local subscription for PayPal %s",
            event.id,
            event.event_type,
            resource.id,
        )
        return

    if await apply_subscription_resource(db, subscription, resource):
        logger.info(
            "Webhook %s: subscription %s now %s",
            event.event_type,
            resource.id,
            subscription.status,
        )


async def handle_payment_event(db: AsyncSession, event: PaymentNotification) -> None:
    """Handle payment completed/failed — append to the payment log only."""
    await record_payment_event(
        db,
        event_type=PAYMENT_EVENT_TYPES[event.event_type],
        payload=event.model_dump(mode="json"),
        provider_subscription_id=event.provider_subscription_id,
        provider_event_id=event.id,
    )


async def dispatch_event(db: AsyncSession, event: WebhookEvent) -> None:
    """Route a parsed event to its handler; unknown types are logged and dropped."""
    if isinstance(event, SubscriptionLifecycleEvent):
        await handle_subscription_event(db, event)
    elif isinstance(event, PaymentNotification):
        await handle_payment_event(db, event)
    else:
        logger.info("Unhandled webhook event type: %s (id=%s)", event.event_type, event.id)
