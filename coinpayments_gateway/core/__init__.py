"""Core payment processing logic."""
from .exceptions import (
    AuthenticationError,
    ConflictError,
    PaymentError,
    UpstreamError,
    ValidationError,
)
from .payment_service import PaymentService
from .ports import PaymentRecord, PaymentStore, ProcessorClient
from .status_updater import StatusUpdater

__all__ = [
    "AuthenticationError",
    "ConflictError",
    "PaymentError",
    "PaymentRecord",
    "PaymentService",
    "PaymentStore",
    "ProcessorClient",
    "StatusUpdater",
    "UpstreamError",
    "ValidationError",
]
