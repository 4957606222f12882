"""Subscription lifecycle — create, verify, cancel, and inspect PayPal subscriptions.

Each operation is a short sequence of dependent awaits (token, provider
call, local write). PayPal is the source of truth for whether a
subscription exists; the local row is a cache reconciled by webhooks and by
:func:`verify_subscription`.
"""

import logging
import time
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing import paypal_client
from app.billing.plans import get_plan
from app.billing.webhooks import apply_subscription_resource
from app.errors import (
    AlreadyCancelledOrMissing,
    Forbidden,
    NotFound,
    NotFoundOrForbidden,
    PersistenceError,
    PlanNotConfigured,
    SubscriptionConflict,
)
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.paypal import ProviderPlanResource, ProviderSubscriptionResource
from app.services.subscription_service import (
    get_owned_subscription,
    get_subscription_for_user,
    mark_cancelled,
    upsert_pending_subscription,
)

logger = logging.getLogger(__name__)

# Statuses in which starting another subscription would double-bill
_LIVE_STATUSES = frozenset({"active", "approved", "trial"})

DEFAULT_CANCEL_REASON = "Customer requested cancellation"


def make_idempotency_key(user_id: uuid.UUID) -> str:
    """Fresh per attempt: a retry after a failed create is a new attempt."""
    return f"{user_id}-{time.time_ns()}"


async def _access_token() -> tuple[str, paypal_client.PayPalCredentials]:
    creds = paypal_client.paypal_credentials()
    token = await paypal_client.get_access_token(
        creds.client_id, creds.client_secret, creds.api_base
    )
    return token, creds


async def create_subscription(
    db: AsyncSession,
    profile: Profile,
    plan_id: str,
    return_url: str,
    cancel_url: str,
) -> str:
    """Start a PayPal subscription for the caller and return the approval URL.

    If PayPal accepts the subscription but the local write fails, the URL is
    still returned: blocking the user would leave a PayPal subscription with
    no local record at all. The failure is logged at CRITICAL and the first
    webhook for it will be reported as an orphan.
    """
    user_id = profile.id
    email = profile.email

    # Validate everything we can before spending a provider round-trip
    plan = get_plan(plan_id)
    if plan is None:
        raise NotFound(f"Plan '{plan_id}' not found.")
    if not plan.paypal_plan_id:
        logger.error("Plan %s has no PayPal plan id configured", plan_id)
        raise PlanNotConfigured()

    existing = await get_subscription_for_user(db, user_id)
    if existing is not None and existing.status in _LIVE_STATUSES:
        raise SubscriptionConflict(
            f"You already have a subscription that is {existing.status}."
        )

    token, creds = await _access_token()
    created = await paypal_client.create_subscription(
        token,
        creds.api_base,
        plan_id=plan.paypal_plan_id,
        subscriber_email=email,
        return_url=return_url,
        cancel_url=cancel_url,
        idempotency_key=make_idempotency_key(user_id),
        custom_id=str(user_id),
    )

    try:
        await upsert_pending_subscription(
            db,
            user_id=user_id,
            plan_id=plan.id,
            provider_subscription_id=created.provider_subscription_id,
        )
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        logger.critical(
            "PayPal subscription %s created for user %s but the local write failed; "
            "manual reconciliation required",
            created.provider_subscription_id,
            user_id,
            exc_info=True,
        )

    return created.approval_url


async def cancel_subscription(
    db: AsyncSession,
    profile: Profile,
    subscription_id: uuid.UUID,
    reason: str = DEFAULT_CANCEL_REASON,
) -> Subscription:
    """Cancel the caller's subscription at PayPal, then locally.

    A PayPal failure leaves the local row untouched so the two never
    diverge; the caller retries. A PayPal 404 counts as success.
    """
    subscription = await get_owned_subscription(db, subscription_id, profile.id)
    if subscription is None:
        raise NotFoundOrForbidden()

    if subscription.is_terminal:
        logger.info(
            "Subscription %s is already %s; nothing to cancel",
            subscription.id,
            subscription.status,
        )
        return subscription

    provider_id = subscription.provider_subscription_id
    if provider_id:
        token, creds = await _access_token()
        try:
            await paypal_client.cancel_subscription(token, creds.api_base, provider_id, reason)
        except AlreadyCancelledOrMissing:
            logger.info(
                "PayPal subscription %s already cancelled or missing; cancelling locally",
                provider_id,
            )
    else:
        logger.info(
            "Subscription %s was never confirmed by PayPal; cancelling locally only",
            subscription.id,
        )

    try:
        return await mark_cancelled(db, subscription)
    except SQLAlchemyError as e:
        logger.error(
            "PayPal subscription %s cancelled but local update of %s failed",
            provider_id,
            subscription.id,
            exc_info=True,
        )
        raise PersistenceError() from e


async def get_subscription_details(
    db: AsyncSession,
    profile: Profile,
    provider_subscription_id: str | None = None,
) -> ProviderSubscriptionResource:
    """Fetch PayPal's view of a subscription.

    Regular users get their own; admins may name any PayPal subscription id.
    """
    if provider_subscription_id is None:
        subscription = await get_subscription_for_user(db, profile.id)
        if subscription is None or not subscription.provider_subscription_id:
            raise NotFound("No subscription found for this user.")
        provider_subscription_id = subscription.provider_subscription_id
        logger.info("User %s requesting details for %s", profile.id, provider_subscription_id)
    elif not profile.is_admin:
        raise Forbidden("Admin access required")
    else:
        logger.info("Admin %s requesting details for %s", profile.id, provider_subscription_id)

    token, creds = await _access_token()
    return await paypal_client.get_subscription_details(
        token, creds.api_base, provider_subscription_id
    )


async def get_plan_details(plan_id: str) -> ProviderPlanResource:
    """Fetch PayPal's definition of one of our plans, looked up by internal key."""
    plan = get_plan(plan_id)
    if plan is None:
        raise NotFound(f"Plan '{plan_id}' not found.")
    if not plan.paypal_plan_id:
        logger.error("Plan %s has no PayPal plan id configured", plan_id)
        raise PlanNotConfigured()

    token, creds = await _access_token()
    return await paypal_client.get_plan_details(token, creds.api_base, plan.paypal_plan_id)


async def verify_subscription(db: AsyncSession, profile: Profile) -> Subscription:
    """Refresh the caller's row from PayPal, e.g. right after they approve.

    Applies the same status mapping as the webhook, so whichever arrives
    first wins and the other is a no-op.
    """
    subscription = await get_subscription_for_user(db, profile.id)
    if subscription is None or not subscription.provider_subscription_id:
        raise NotFound("No subscription found for this user.")

    token, creds = await _access_token()
    resource = await paypal_client.get_subscription_details(
        token, creds.api_base, subscription.provider_subscription_id
    )
    await apply_subscription_resource(db, subscription, resource)
    return subscription
