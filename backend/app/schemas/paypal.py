"""Pydantic v2 models for PayPal resources and webhook events.

Webhook events are a tagged union over ``event_type``: each known type has a
strict schema for the fields we act on, and anything else parses into
:class:`UnknownEvent`, which the receiver logs and ignores. Unlisted provider
fields are kept (``extra="allow"``) so the raw resource can be stored and
returned to admins unchanged.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class BillingInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    next_billing_time: datetime | None = None
    failed_payments_count: int | None = None


class ProviderSubscriptionResource(BaseModel):
    """A PayPal subscription as returned by ``GET /v1/billing/subscriptions/{id}``."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: str | None = None
    plan_id: str | None = None
    custom_id: str | None = None
    start_time: datetime | None = None
    status_update_time: datetime | None = None
    billing_info: BillingInfo | None = None


class ProviderPlanResource(BaseModel):
    """A PayPal billing plan as returned by ``GET /v1/billing/plans/{id}``."""

    model_config = ConfigDict(extra="allow")

    id: str
    product_id: str | None = None
    name: str | None = None
    status: str | None = None
    description: str | None = None
    billing_cycles: list[dict[str, Any]] | None = None


class CreatedProviderSubscription(BaseModel):
    """What the orchestrator needs back from a create call."""

    provider_subscription_id: str
    approval_url: str
    status: str


# --- Webhook events ---

SUBSCRIPTION_EVENT_TYPES: frozenset[str] = frozenset({
    "BILLING.SUBSCRIPTION.CREATED",
    "BILLING.SUBSCRIPTION.ACTIVATED",
    "BILLING.SUBSCRIPTION.UPDATED",
    "BILLING.SUBSCRIPTION.RE-ACTIVATED",
    "BILLING.SUBSCRIPTION.CANCELLED",
    "BILLING.SUBSCRIPTION.SUSPENDED",
    "BILLING.SUBSCRIPTION.EXPIRED",
})

# PayPal event type -> value stored in payment_events.event_type
PAYMENT_EVENT_TYPES: dict[str, str] = {
    "PAYMENT.SALE.COMPLETED": "payment_completed",
    "BILLING.SUBSCRIPTION.PAYMENT.FAILED": "payment_failed",
}


class WebhookEventBase(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    event_type: str
    resource_type: str | None = None


class SubscriptionLifecycleEvent(WebhookEventBase):
    resource: ProviderSubscriptionResource


class PaymentNotification(WebhookEventBase):
    resource: dict[str, Any]

    @property
    def provider_subscription_id(self) -> str | None:
        """Subscription this payment belongs to.

        Sale resources reference it as ``billing_agreement_id``; the
        subscription payment-failed resource *is* the subscription.
        """
        if self.event_type.startswith("PAYMENT.SALE."):
            return self.resource.get("billing_agreement_id")
        return self.resource.get("id")


class UnknownEvent(WebhookEventBase):
    resource: Any = None


WebhookEvent = SubscriptionLifecycleEvent | PaymentNotification | UnknownEvent


def parse_webhook_event(data: dict[str, Any]) -> WebhookEvent:
    """Pick the event model by ``event_type`` and validate against it.

    Raises ``pydantic.ValidationError`` when a known event type does not match
    its schema.
    """
    event_type = data.get("event_type") if isinstance(data, dict) else None
    if event_type in SUBSCRIPTION_EVENT_TYPES:
        return SubscriptionLifecycleEvent.model_validate(data)
    if event_type in PAYMENT_EVENT_TYPES:
        return PaymentNotification.model_validate(data)
    return UnknownEvent.model_validate(data)
