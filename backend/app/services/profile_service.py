"""Profile service — admin mutations of role, account status and exemption."""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.profile import Profile

logger = logging.getLogger(__name__)


async def get_profile(db: AsyncSession, profile_id: uuid.UUID) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.id == profile_id))
    return result.scalar_one_or_none()


async def set_subscription_exempt(
    db: AsyncSession, profile: Profile, exempt: bool, changed_by: uuid.UUID
) -> Profile:
    """Grant or revoke subscribed-equivalent access without billing."""
    profile.subscription_exempt = exempt
    await db.flush()
    logger.info(
        "Profile %s subscription_exempt=%s (changed by %s)", profile.id, exempt, changed_by
    )
    return profile


async def update_role(
    db: AsyncSession, profile: Profile, role: str, changed_by: uuid.UUID
) -> Profile:
    old_role = profile.role
    profile.role = role
    await db.flush()
    logger.info(
        "Profile %s role changed from %s to %s (changed by %s)",
        profile.id,
        old_role,
        role,
        changed_by,
    )
    return profile


async def update_status(
    db: AsyncSession, profile: Profile, status: str, changed_by: uuid.UUID
) -> Profile:
    old_status = profile.status
    profile.status = status
    await db.flush()
    logger.info(
        "Profile %s status changed from %s to %s (changed by %s)",
        profile.id,
        old_status,
        status,
        changed_by,
    )
    return profile
