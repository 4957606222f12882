"""SQLAlchemy models for the billing backend.

All models are imported here so that ``Base.metadata`` knows every table
(``create_all`` in the test suite relies on it). If you add a new model,
import it in this file.
"""

from app.models.payment_event import PaymentEvent
from app.models.profile import Profile
from app.models.subscription import Subscription

__all__ = [
    "PaymentEvent",
    "Profile",
    "Subscription",
]
