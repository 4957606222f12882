"""Error taxonomy shared by the auth gate, billing orchestrator, and webhook.

Every ``BillingError`` carries the HTTP status it maps to and a public
message. ``app.main`` renders them as ``{"error": ..., "details": ...}``.
Provider-side failures keep the raw provider response on the exception for
logging only; the public message stays generic.
"""


class BillingError(Exception):
    """Base class for errors that translate directly into an HTTP response."""

    status_code: int = 500
    message: str = "An unexpected error occurred."

    def __init__(
        self,
        message: str | None = None,
        details: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.message
        self.details = details
        self.headers = headers
        super().__init__(self.message)


class InvalidRequest(BillingError):
    status_code = 400
    message = "Invalid request."


class AuthenticationRequired(BillingError):
    status_code = 401
    message = "Authentication required or invalid token."

    def __init__(self, message: str | None = None, details: str | None = None) -> None:
        super().__init__(message, details, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(BillingError):
    status_code = 403
    message = "Forbidden."


class NotFound(BillingError):
    status_code = 404
    message = "Not found."


class NotFoundOrForbidden(NotFound):
    """The row does not exist or belongs to someone else; deliberately indistinguishable."""

    message = "Subscription not found or does not belong to the authenticated user."


class SubscriptionConflict(BillingError):
    status_code = 409
    message = "You already have a subscription."


class PlanNotConfigured(BillingError):
    status_code = 500
    message = "Billing plan is not configured."


class ProviderNotConfigured(BillingError):
    status_code = 500
    message = "Payment provider is not configured."


class ProviderError(BillingError):
    """The payment provider rejected or failed a call."""

    status_code = 500
    message = "Payment provider request failed."


class ProviderAuthError(ProviderError):
    """Client-credentials token request was rejected."""


class ProviderRequestError(ProviderError):
    """A billing API call returned non-2xx or could not be completed.

    ``provider_status`` is ``None`` for transport failures.
    """

    def __init__(self, provider_status: int | None, body: str = "") -> None:
        super().__init__()
        self.provider_status = provider_status
        self.body = body


class AlreadyCancelledOrMissing(Exception):
    """Provider answered 404 to a cancel request; nothing is billing any more."""

    def __init__(self, provider_subscription_id: str) -> None:
        super().__init__(provider_subscription_id)
        self.provider_subscription_id = provider_subscription_id


class PersistenceError(BillingError):
    status_code = 500
    message = "Failed to save subscription state."


class SignatureVerificationFailed(BillingError):
    status_code = 401
    message = "Signature verification failed."
