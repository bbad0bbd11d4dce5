# Overview: Error taxonomy shared by the sales, cash register and catalog services.

"""
Domain errors.

Validation errors are raised before any write and are never retried.
Backend errors are classified once retries are exhausted; each carries a
fixed user-facing message while the original exception stays chained
(``raise ... from exc``) for the logs.
"""

from ..validation import ValidationError, NotFoundError, ConflictError


# =============================================================================
# VALIDATION (400)
# =============================================================================

class InvalidPaymentMethodFormat(ValidationError):
    """A payment method token is not lowercase letters only."""

    def __init__(self, message: str = "Invalid payment method format"):
        super().__init__(message)


class PaymentSplitMismatch(ValidationError):
    """Split amounts do not reconcile with the items total."""

    def __init__(self, items_total, splits_total):
        super().__init__("Payment splits total must match items total")
        self.items_total = items_total
        self.splits_total = splits_total


class InsufficientFunds(ValidationError):
    """Withdrawal larger than what the payment method currently holds."""

    def __init__(self, method: str, requested, available):
        super().__init__("Amount exceeds what is available in the register for this payment method")
        self.method = method
        self.requested = requested
        self.available = available


class DiscountSettingsError(ValidationError):
    """Discount tiers violate the tier ordering rules."""


# =============================================================================
# LOOKUPS (404) / STATE (409)
# =============================================================================

class SaleNotFound(NotFoundError):
    pass


class ProductNotFound(NotFoundError):
    pass


class PaymentMethodNotFound(NotFoundError):
    pass


class SaleStateError(ConflictError):
    """Status transition not allowed (only completed -> cancelled exists)."""


# =============================================================================
# BACKEND FAILURES (after retries)
# =============================================================================

class BackendFailure(Exception):
    """Base for classified backend failures. str() is safe to show to users."""
    status_code = 500
    user_message = "The operation could not be completed. Please try again."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)


class RateLimited(BackendFailure):
    status_code = 429
    user_message = "Too many requests. Please try again in a moment."


class PermissionDenied(BackendFailure):
    status_code = 403
    user_message = "You do not have permission to perform this action."


class SaleCreationFailed(BackendFailure):
    user_message = "Error creating sale. Please try again."


class SaleCancellationFailed(BackendFailure):
    user_message = "Error cancelling sale. Please try again."


class CashMovementFailed(BackendFailure):
    user_message = "Error registering the cash movement. Please try again."


class BackendUnavailable(BackendFailure):
    user_message = "The register data could not be loaded. Please try again."


DOMAIN_ERRORS = (ValidationError, NotFoundError, ConflictError, BackendFailure)
