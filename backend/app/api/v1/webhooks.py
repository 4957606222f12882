"""PayPal webhook endpoint — receives and reconciles billing events."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.billing.webhooks import dispatch_event, verify_transmission
from app.database import get_db
from app.errors import BillingError, InvalidRequest, SignatureVerificationFailed
from app.schemas.billing import WebhookAck
from app.schemas.paypal import parse_webhook_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.post("/paypal", response_model=WebhookAck)
async def paypal_webhook(request: Request, db: AsyncSession = Depends(get_db)) -> WebhookAck:
    """Receive and process PayPal webhook events.

    Non-2xx responses make PayPal redeliver, so only a bad signature or a
    malformed body is rejected; orphan and unknown events are acknowledged.
    """
    # 1. Read raw body once (verification needs the untouched bytes)
    payload = await request.body()

    # 2. Verify signature; an unverified webhook never touches billing state
    if not await verify_transmission(request.headers, payload):
        logger.warning("Webhook signature verification failed")
        raise SignatureVerificationFailed()

    # 3. Parse
    try:
        event = parse_webhook_event(json.loads(payload))
    except ValueError as e:
        logger.warning("Invalid webhook payload: %s", e)
        raise InvalidRequest("Invalid payload") from e

    logger.info(
        "Processing webhook event: %s (id=%s, resource_type=%s)",
        event.event_type,
        event.id,
        event.resource_type,
    )

    # 4. Dispatch
    try:
        await dispatch_event(db, event)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.exception(
            "Error processing webhook event %s; raw body: %s",
            event.id,
            payload[:500],
        )
        raise BillingError("Webhook processing failed") from e

    return WebhookAck(received=True)
