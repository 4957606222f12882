"""Async PayPal REST client for subscription billing.

Every function takes its credentials / base URL explicitly and opens its own
``httpx.AsyncClient``; nothing is cached between calls. Raw PayPal response
bodies are logged here and never propagated to API callers.
"""

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from app.config import settings
from app.errors import (
    AlreadyCancelledOrMissing,
    NotFound,
    ProviderAuthError,
    ProviderNotConfigured,
    ProviderRequestError,
)
from app.schemas.paypal import (
    CreatedProviderSubscription,
    ProviderPlanResource,
    ProviderSubscriptionResource,
)

logger = logging.getLogger(__name__)

# Header names PayPal signs every webhook transmission with, mapped to the
# field names of the verify-webhook-signature request.
TRANSMISSION_HEADERS: dict[str, str] = {
    "paypal-transmission-id": "transmission_id",
    "paypal-transmission-time": "transmission_time",
    "paypal-cert-url": "cert_url",
    "paypal-auth-algo": "auth_algo",
    "paypal-transmission-sig": "transmission_sig",
}


@dataclass(frozen=True)
class PayPalCredentials:
    """Everything needed to talk to the PayPal API for one request."""

    client_id: str
    client_secret: str
    api_base: str
    webhook_id: str = ""


def paypal_credentials() -> PayPalCredentials:
    """Build credentials from settings; fail if the client id/secret are unset."""
    if not settings.paypal_client_id or not settings.paypal_client_secret:
        logger.error("Missing PAYPAL_CLIENT_ID / PAYPAL_CLIENT_SECRET")
        raise ProviderNotConfigured()
    return PayPalCredentials(
        client_id=settings.paypal_client_id,
        client_secret=settings.paypal_client_secret,
        api_base=settings.paypal_api_url.rstrip("/"),
        webhook_id=settings.paypal_webhook_id,
    )


def get_http_client(api_base: str) -> httpx.AsyncClient:
    """Create an HTTP client for the PayPal API."""
    return httpx.AsyncClient(base_url=api_base, timeout=settings.paypal_timeout_seconds)


def _bearer(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def _json_body(response: httpx.Response) -> dict[str, Any] | None:
    """Decode a JSON object body; None if the body is not one."""
    try:
        data = response.json()
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


async def _send(api_base: str, method: str, url: str, **kwargs) -> httpx.Response:
    """Perform one request, translating transport failures."""
    async with get_http_client(api_base) as client:
        try:
            return await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("PayPal %s %s failed: %s", method, url, e)
            raise ProviderRequestError(None, str(e)) from e


async def get_access_token(client_id: str, client_secret: str, api_base: str) -> str:
    """Obtain an OAuth2 client-credentials access token."""
    try:
        response = await _send(
            api_base,
            "POST",
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(client_id, client_secret),
            headers={"Accept": "application/json"},
        )
    except ProviderRequestError as e:
        raise ProviderAuthError() from e

    if not response.is_success:
        logger.error("PayPal auth error (%s): %s", response.status_code, response.text)
        raise ProviderAuthError()

    data = _json_body(response)
    token = data.get("access_token") if data else None
    if not token:
        logger.error("PayPal auth response had no access_token")
        raise ProviderAuthError()
    return token


async def create_subscription(
    token: str,
    api_base: str,
    *,
    plan_id: str,
    subscriber_email: str,
    return_url: str,
    cancel_url: str,
    idempotency_key: str,
    custom_id: str | None = None,
    brand_name: str | None = None,
) -> CreatedProviderSubscription:
    """Create a subscription awaiting buyer approval.

    ``idempotency_key`` is sent as ``PayPal-Request-Id``: a replay with the
    same key returns the original subscription instead of creating another.
    """
    payload = {
        "plan_id": plan_id,
        "custom_id": custom_id,
        "subscriber": {"email_address": subscriber_email},
        "application_context": {
            "brand_name": brand_name or settings.paypal_brand_name,
            "locale": "en-US",
            "shipping_preference": "NO_SHIPPING",
            "user_action": "SUBSCRIBE_NOW",
            "payment_method": {
                "payer_selected": "PAYPAL",
                "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
            },
            "return_url": return_url,
            "cancel_url": cancel_url,
        },
    }
    logger.info("Creating PayPal subscription for plan %s (request id %s)", plan_id, idempotency_key)
    response = await _send(
        api_base,
        "POST",
        "/v1/billing/subscriptions",
        json=payload,
        headers={**_bearer(token), "PayPal-Request-Id": idempotency_key},
    )

    if not response.is_success:
        logger.error(
            "PayPal subscription create error (%s): %s",
            response.status_code,
            response.text,
        )
        raise ProviderRequestError(response.status_code, response.text)

    data = _json_body(response)
    if data is None:
        logger.error("PayPal create response was not a JSON object: %s", response.text)
        raise ProviderRequestError(response.status_code, response.text)
    approval_url = next(
        (link.get("href") for link in data.get("links", []) if link.get("rel") == "approve"),
        None,
    )
    if not data.get("id") or not approval_url:
        logger.error("PayPal create response missing id or approval link: %s", data)
        raise ProviderRequestError(response.status_code, response.text)

    logger.info("Created PayPal subscription %s (%s)", data["id"], data.get("status"))
    return CreatedProviderSubscription(
        provider_subscription_id=data["id"],
        approval_url=approval_url,
        status=data.get("status", "APPROVAL_PENDING"),
    )


async def cancel_subscription(
    token: str, api_base: str, provider_subscription_id: str, reason: str
) -> None:
    """Cancel a subscription immediately.

    Raises:
        AlreadyCancelledOrMissing: PayPal answered 404.
        ProviderRequestError: any other non-2xx.
    """
    logger.info("Cancelling PayPal subscription %s", provider_subscription_id)
    response = await _send(
        api_base,
        "POST",
        f"/v1/billing/subscriptions/{provider_subscription_id}/cancel",
        json={"reason": reason},
        headers=_bearer(token),
    )

    if response.status_code == 404:
        logger.warning(
            "PayPal subscription %s not found on cancel: %s",
            provider_subscription_id,
            response.text,
        )
        raise AlreadyCancelledOrMissing(provider_subscription_id)

    if not response.is_success:
        logger.error(
            "PayPal subscription cancel error (%s) for %s: %s",
            response.status_code,
            provider_subscription_id,
            response.text,
        )
        raise ProviderRequestError(response.status_code, response.text)


async def get_subscription_details(
    token: str, api_base: str, provider_subscription_id: str
) -> ProviderSubscriptionResource:
    """Fetch the current provider-side state of a subscription."""
    response = await _send(
        api_base,
        "GET",
        f"/v1/billing/subscriptions/{provider_subscription_id}",
        headers=_bearer(token),
    )

    if response.status_code == 404:
        logger.info("PayPal subscription %s not found", provider_subscription_id)
        raise NotFound("Subscription not found at the payment provider.")

    if not response.is_success:
        logger.error(
            "PayPal subscription details error (%s) for %s: %s",
            response.status_code,
            provider_subscription_id,
            response.text,
        )
        raise ProviderRequestError(response.status_code, response.text)

    data = _json_body(response)
    try:
        return ProviderSubscriptionResource.model_validate(data)
    except ValidationError as e:
        logger.error(
            "Unexpected PayPal subscription details for %s: %s",
            provider_subscription_id,
            response.text,
        )
        raise ProviderRequestError(response.status_code, response.text) from e


async def get_plan_details(token: str, api_base: str, paypal_plan_id: str) -> ProviderPlanResource:
    """Fetch a billing plan (pricing, billing cycles, status) as PayPal holds it."""
    response = await _send(
        api_base,
        "GET",
        f"/v1/billing/plans/{paypal_plan_id}",
        headers=_bearer(token),
    )

    if response.status_code == 404:
        logger.info("PayPal plan %s not found", paypal_plan_id)
        raise NotFound("Plan not found at the payment provider.")

    if not response.is_success:
        logger.error(
            "PayPal plan details error (%s) for %s: %s",
            response.status_code,
            paypal_plan_id,
            response.text,
        )
        raise ProviderRequestError(response.status_code, response.text)

    try:
        return ProviderPlanResource.model_validate(_json_body(response))
    except ValidationError as e:
        logger.error("Unexpected PayPal plan details for %s: %s", paypal_plan_id, response.text)
        raise ProviderRequestError(response.status_code, response.text) from e


async def verify_webhook_signature(
    headers: Mapping[str, str],
    raw_body: bytes,
    webhook_id: str,
    token: str,
    api_base: str,
) -> bool:
    """Ask PayPal whether a webhook transmission is authentic.

    Returns True only when PayPal reports ``verification_status == "SUCCESS"``.
    Every other outcome is False, never "assume valid".
    """
    if not webhook_id:
        logger.error("PAYPAL_WEBHOOK_ID is not configured; cannot verify webhook")
        return False

    lowered = {k.lower(): v for k, v in headers.items()}
    fields: dict[str, str] = {}
    for header, field in TRANSMISSION_HEADERS.items():
        value = lowered.get(header)
        if not value:
            logger.warning("Webhook missing required header %s", header)
            return False
        fields[field] = value

    try:
        event = json.loads(raw_body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON; cannot verify")
        return False

    logger.info(
        "Verifying PayPal webhook transmission %s (algo %s)",
        fields["transmission_id"],
        fields["auth_algo"],
    )
    try:
        response = await _send(
            api_base,
            "POST",
            "/v1/notifications/verify-webhook-signature",
            json={**fields, "webhook_id": webhook_id, "webhook_event": event},
            headers=_bearer(token),
        )
    except ProviderRequestError:
        return False

    if not response.is_success:
        logger.error(
            "PayPal verification API error (%s): %s",
            response.status_code,
            response.text,
        )
        return False

    data = _json_body(response)
    if data is None:
        logger.error("PayPal verification response was not a JSON object: %s", response.text)
        return False

    verification_status = data.get("verification_status")
    if verification_status != "SUCCESS":
        logger.warning(
            "PayPal webhook %s failed verification: %s",
            fields["transmission_id"],
            verification_status,
        )
        return False
    return True
