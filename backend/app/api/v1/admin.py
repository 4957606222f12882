"""Admin API endpoints — subscription oversight and profile management."""

import logging
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, require_admin
from app.billing import lifecycle
from app.errors import Forbidden, NotFound
from app.models.profile import Profile
from app.schemas.billing import SubscriptionRecord
from app.schemas.paypal import ProviderPlanResource, ProviderSubscriptionResource
from app.schemas.profile import (
    ExemptionRequest,
    ProfileResponse,
    RoleUpdateRequest,
    StatusUpdateRequest,
)
from app.services import profile_service
from app.services.subscription_service import list_subscriptions

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


async def _target_profile(db: AsyncSession, user_id: uuid.UUID) -> Profile:
    profile = await profile_service.get_profile(db, user_id)
    if profile is None:
        raise NotFound("User not found.")
    return profile


@router.get("/subscriptions", response_model=list[SubscriptionRecord])
async def list_all_subscriptions(
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_admin),
) -> list[SubscriptionRecord]:
    """Every subscription row, newest first."""
    subscriptions = await list_subscriptions(db)
    return [SubscriptionRecord.model_validate(s) for s in subscriptions]


@router.get(
    "/subscriptions/{provider_subscription_id}/details",
    response_model=ProviderSubscriptionResource,
)
async def get_provider_subscription_details(
    provider_subscription_id: str,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_admin),
) -> ProviderSubscriptionResource:
    """PayPal's view of any subscription."""
    return await lifecycle.get_subscription_details(db, admin, provider_subscription_id)


@router.get("/plans/{plan_id}/details", response_model=ProviderPlanResource)
async def get_provider_plan_details(
    plan_id: str,
    admin: Profile = Depends(require_admin),
) -> ProviderPlanResource:
    """PayPal's definition of a catalogue plan (billing cycles, pricing, status)."""
    logger.info("Admin %s requesting PayPal details for plan %s", admin.id, plan_id)
    return await lifecycle.get_plan_details(plan_id)


@router.post("/users/{user_id}/exemption", response_model=ProfileResponse)
async def set_exemption(
    user_id: uuid.UUID,
    body: ExemptionRequest,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_admin),
) -> ProfileResponse:
    """Grant or revoke a billing exemption."""
    profile = await _target_profile(db, user_id)
    profile = await profile_service.set_subscription_exempt(db, profile, body.exempt, admin.id)
    return ProfileResponse.model_validate(profile)


@router.patch("/users/{user_id}/role", response_model=ProfileResponse)
async def update_role(
    user_id: uuid.UUID,
    body: RoleUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_admin),
) -> ProfileResponse:
    """Change a user's role. Admins cannot change their own."""
    if user_id == admin.id:
        raise Forbidden("Cannot change your own role")
    profile = await _target_profile(db, user_id)
    profile = await profile_service.update_role(db, profile, body.role, admin.id)
    return ProfileResponse.model_validate(profile)


@router.patch("/users/{user_id}/status", response_model=ProfileResponse)
async def update_status(
    user_id: uuid.UUID,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: Profile = Depends(require_admin),
) -> ProfileResponse:
    """Change a user's account status (independent of subscription status)."""
    profile = await _target_profile(db, user_id)
    profile = await profile_service.update_status(db, profile, body.status, admin.id)
    return ProfileResponse.model_validate(profile)
