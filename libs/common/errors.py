"""Error taxonomy for the storefront client core.

Every failure resolves to one of these. Passive background work (profile
refresh, address prefetch, cart merge) logs and swallows them; explicit
user actions (login, add-to-cart, place order) let them propagate.
"""

from typing import Optional


class StorefrontError(Exception):
    """Base exception for storefront API and client-state errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class ConfigurationError(StorefrontError):
    """The client is missing required configuration (e.g. API base URL)."""


class NetworkUnreachable(StorefrontError):
    """The request never reached the API."""


class ApiError(StorefrontError):
    """The API answered with an error envelope or a non-2xx status."""


class MalformedResponse(StorefrontError):
    """The API answered successfully but without the fields we rely on."""


class SessionExpired(StorefrontError):
    """Refresh failed or was impossible; the user must log in again."""


class SignupLoginFailed(StorefrontError):
    """The account was created but the follow-up login failed."""


class ValidationFailed(StorefrontError):
    """Field-level validation errors, keyed by field name."""

    def __init__(self, errors: dict[str, str], message: str = "Validation failed"):
        self.errors = dict(errors)
        super().__init__(message)


class MergeFailed(StorefrontError):
    """Guest cart/wishlist could not be merged; the guest session id is kept."""


class PlacementPartial(StorefrontError):
    """The order exists but its payment intent could not be created."""

    def __init__(self, message: str, order=None):
        self.order = order
        super().__init__(message)

    @property
    def order_number(self) -> Optional[str]:
        return self.order.order_number if self.order is not None else None


class PaymentDeclined(StorefrontError):
    """Payment collection failed; the same payment intent may be retried."""


class CheckoutStateError(StorefrontError):
    """A checkout operation was attempted from the wrong step."""
