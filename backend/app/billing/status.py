"""Derive access flags from a subscription row.

This is the single place that decides whether a user may use
subscription-gated features. It is a pure function of its inputs: pass
``now`` explicitly to get reproducible results.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.database import utcnow


class SubscriptionLike(Protocol):
    status: str
    end_date: datetime | None
    trial_end_date: datetime | None


@dataclass(frozen=True)
class SubscriptionFlags:
    is_subscribed: bool
    is_trialing: bool
    is_cancelled: bool
    is_expired: bool
    is_exempt: bool


def derive_flags(
    subscription: SubscriptionLike | None,
    exempt: bool,
    now: datetime | None = None,
) -> SubscriptionFlags:
    """Compute the UI gating flags.

    - subscribed: status is ``active`` or the profile is exempt
    - trialing: status is ``trial`` and the trial ends in the future
    - cancelled: status is ``cancelled``
    - expired: status is ``expired`` or ``end_date`` has passed
    """
    now = now or utcnow()
    exempt = bool(exempt)

    if subscription is None:
        return SubscriptionFlags(
            is_subscribed=exempt,
            is_trialing=False,
            is_cancelled=False,
            is_expired=False,
            is_exempt=exempt,
        )

    status = subscription.status
    trial_end = subscription.trial_end_date
    end_date = subscription.end_date

    return SubscriptionFlags(
        is_subscribed=status == "active" or exempt,
        is_trialing=status == "trial" and trial_end is not None and trial_end > now,
        is_cancelled=status == "cancelled",
        is_expired=status == "expired" or (end_date is not None and end_date < now),
        is_exempt=exempt,
    )
