"""Pydantic v2 request/response schemas for billing endpoints."""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# --- Request schemas ---


class CreateSubscriptionRequest(BaseModel):
    """Start a PayPal subscription for the authenticated user."""

    plan_id: str = Field(min_length=1, max_length=50)
    return_url: str | None = None
    cancel_url: str | None = None


class CancelSubscriptionRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=127)


# --- Response schemas ---


class PlanResponse(BaseModel):
    """Plan details for display."""

    id: str
    display_name: str
    description: str
    price_cents: int
    currency: str
    interval: str
    available: bool  # False until a PayPal plan id is configured


class PlansListResponse(BaseModel):
    plans: list[PlanResponse]


class SubscriptionRecord(BaseModel):
    """A subscription row as exposed to its owner and to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    plan_id: str
    provider_subscription_id: str | None
    status: str
    start_date: datetime | None
    end_date: datetime | None
    trial_end_date: datetime | None
    cancel_at_period_end: bool
    created_at: datetime
    updated_at: datetime


class SubscriptionFlagsResponse(BaseModel):
    is_subscribed: bool
    is_trialing: bool
    is_cancelled: bool
    is_expired: bool
    is_exempt: bool


class SubscriptionStatusResponse(BaseModel):
    """The caller's subscription (if any) plus the derived access flags."""

    subscription: SubscriptionRecord | None
    flags: SubscriptionFlagsResponse


class CreateSubscriptionResponse(BaseModel):
    approval_url: str


class CancelSubscriptionResponse(BaseModel):
    success: bool
    message: str
    subscription: SubscriptionRecord


class WebhookAck(BaseModel):
    received: bool

