"""FastAPI application and routes."""
from .main import create_app
from .schemas import (
    CreatePaymentRequest,
    IPNNotification,
    PaymentStatusResponse,
)

__all__ = [
    "create_app",
    "CreatePaymentRequest",
    "IPNNotification",
    "PaymentStatusResponse",
]
