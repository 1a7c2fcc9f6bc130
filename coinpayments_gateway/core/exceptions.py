"""Exception taxonomy for payment creation and IPN handling."""
from typing import Optional


class PaymentError(Exception):
    """Base exception for payment processing errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(PaymentError):
    """Raised when a required input field is missing or malformed."""

    pass


class UpstreamError(PaymentError):
    """Raised when the payment processor call fails, times out or reports an error."""

    pass


class ConflictError(PaymentError):
    """Raised when a payment with the same transaction ID is already stored."""

    pass


class AuthenticationError(PaymentError):
    """Raised when an IPN fails signature verification."""

    pass
