"""Billing API endpoints — plans, subscription status, PayPal create/verify/cancel."""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_active_profile, get_db
from app.billing import lifecycle
from app.billing.plans import PLANS
from app.billing.status import derive_flags
from app.config import settings
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.billing import (
    CancelSubscriptionRequest,
    CancelSubscriptionResponse,
    CreateSubscriptionRequest,
    CreateSubscriptionResponse,
    PlanResponse,
    PlansListResponse,
    SubscriptionFlagsResponse,
    SubscriptionRecord,
    SubscriptionStatusResponse,
)
from app.schemas.paypal import ProviderSubscriptionResource
from app.services.subscription_service import get_subscription_for_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/billing", tags=["billing"])


def _status_response(
    subscription: Subscription | None, profile: Profile
) -> SubscriptionStatusResponse:
    flags = derive_flags(subscription, profile.subscription_exempt)
    return SubscriptionStatusResponse(
        subscription=SubscriptionRecord.model_validate(subscription) if subscription else None,
        flags=SubscriptionFlagsResponse(
            is_subscribed=flags.is_subscribed,
            is_trialing=flags.is_trialing,
            is_cancelled=flags.is_cancelled,
            is_expired=flags.is_expired,
            is_exempt=flags.is_exempt,
        ),
    )


@router.get("/plans", response_model=PlansListResponse)
async def list_plans() -> PlansListResponse:
    """List available plans (public — no auth required)."""
    return PlansListResponse(
        plans=[
            PlanResponse(
                id=p.id,
                display_name=p.display_name,
                description=p.description,
                price_cents=p.price_cents,
                currency=p.currency,
                interval=p.interval,
                available=p.paypal_plan_id is not None,
            )
            for p in PLANS.values()
        ]
    )


@router.get("/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription(
    db: AsyncSession = Depends(get_db),
    current_profile: Profile = Depends(get_current_active_profile),
) -> SubscriptionStatusResponse:
    """Current subscription row and the access flags derived from it."""
    subscription = await get_subscription_for_user(db, current_profile.id)
    return _status_response(subscription, current_profile)


@router.post("/subscriptions", response_model=CreateSubscriptionResponse)
async def create_subscription(
    body: CreateSubscriptionRequest,
    db: AsyncSession = Depends(get_db),
    current_profile: Profile = Depends(get_current_active_profile),
) -> CreateSubscriptionResponse:
    """Create a PayPal subscription; the frontend redirects to the approval URL."""
    approval_url = await lifecycle.create_subscription(
        db,
        current_profile,
        plan_id=body.plan_id,
        return_url=body.return_url or settings.paypal_return_url,
        cancel_url=body.cancel_url or settings.paypal_cancel_url,
    )
    return CreateSubscriptionResponse(approval_url=approval_url)


@router.post("/subscription/verify", response_model=SubscriptionStatusResponse)
async def verify_subscription(
    db: AsyncSession = Depends(get_db),
    current_profile: Profile = Depends(get_current_active_profile),
) -> SubscriptionStatusResponse:
    """Re-sync the caller's row from PayPal (called after returning from approval)."""
    subscription = await lifecycle.verify_subscription(db, current_profile)
    return _status_response(subscription, current_profile)


@router.post(
    "/subscriptions/{subscription_id}/cancel",
    response_model=CancelSubscriptionResponse,
)
async def cancel_subscription(
    subscription_id: uuid.UUID,
    body: CancelSubscriptionRequest | None = None,
    db: AsyncSession = Depends(get_db),
    current_profile: Profile = Depends(get_current_active_profile),
) -> CancelSubscriptionResponse:
    """Cancel the caller's subscription."""
    reason = (body.reason if body else None) or lifecycle.DEFAULT_CANCEL_REASON
    subscription = await lifecycle.cancel_subscription(
        db, current_profile, subscription_id, reason
    )
    return CancelSubscriptionResponse(
        success=True,
        message=(
            "Subscription cancelled successfully. It will remain active until "
            "the end of the current billing period."
        ),
        subscription=SubscriptionRecord.model_validate(subscription),
    )


@router.get("/subscription/details", response_model=ProviderSubscriptionResource)
async def get_subscription_details(
    db: AsyncSession = Depends(get_db),
    current_profile: Profile = Depends(get_current_active_profile),
) -> ProviderSubscriptionResource:
    """PayPal's current view of the caller's subscription."""
    return await lifecycle.get_subscription_details(db, current_profile)
