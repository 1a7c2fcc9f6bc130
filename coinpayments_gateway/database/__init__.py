"""Database package for the payment gateway."""
from .connection import Database
from .models import Base, Payment
from .store import SqlAlchemyPaymentStore

__all__ = [
    "Base",
    "Database",
    "Payment",
    "SqlAlchemyPaymentStore",
]
