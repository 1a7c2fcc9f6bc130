"""
Capability interfaces the core logic depends on.

``PaymentStore`` reads and writes payment records; ``ProcessorClient``
creates transactions at the payment processor. Implementations live in
``database.store`` and ``integrations.coinpayments_client``.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Context, Decimal, InvalidOperation
from typing import Any, Dict, Optional

from coinpayments_gateway.core.exceptions import ValidationError

# NUMERIC(20, 8)
AMOUNT_SCALE = 8
AMOUNT_MAX_INTEGER_DIGITS = 12


@dataclass(frozen=True)
class PaymentRecord:
    """Immutable snapshot of a stored payment."""

    id: int
    txn_id: str
    amount: Decimal
    currency: str
    status: str
    email: Optional[str]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "txn_id": self.txn_id,
            "amount": str(self.amount),
            "currency": self.currency,
            "status": self.status,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def parse_amount(value: Any) -> Decimal:
    """
    Parse a payment amount into a positive decimal that fits NUMERIC(20, 8).

    Args:
        value: Decimal, int or decimal string (floats are rejected)

    Returns:
        Decimal: Parsed amount

    Raises:
        ValidationError: If the value is missing, not a number, not positive,
            or has more precision than the column can hold
    """
    if value is None or isinstance(value, (bool, float)):
        raise ValidationError("Amount must be a decimal string")

    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount: {value!r}", e)

    if not amount.is_finite():
        raise ValidationError("Amount must be a finite number")
    if amount <= 0:
        raise ValidationError("Amount must be positive")

    if amount.adjusted() + 1 > AMOUNT_MAX_INTEGER_DIGITS:
        raise ValidationError("Amount is too large")

    # Strip trailing zeros without rounding so "1E+2" and "0.100000000" are
    # measured by their significant digits.
    normalized = amount.normalize(Context(prec=len(amount.as_tuple().digits)))
    exponent = normalized.as_tuple().exponent
    if -exponent > AMOUNT_SCALE:
        raise ValidationError(f"Amount supports at most {AMOUNT_SCALE} decimal places")

    # Plain notation: 1E+2 becomes 100
    if exponent > 0:
        normalized = normalized.quantize(Decimal(1))
    return normalized


class PaymentStore(ABC):
    """Port for payment persistence.

    Contract:
    - insert() raises ConflictError when txn_id is already stored
    - update_status_by_transaction_id() returns 0 for an unknown txn_id
      instead of raising
    - no caching; every call reflects the database
    """

    @abstractmethod
    async def insert(
        self,
        txn_id: str,
        amount: Decimal | str,
        currency: str,
        status: str = "pending",
        email: Optional[str] = None,
    ) -> PaymentRecord:
        """Insert a new payment record."""

    @abstractmethod
    async def update_status_by_transaction_id(self, txn_id: str, status: str) -> int:
        """Set the status of the payment with txn_id; returns rows changed (0 or 1)."""

    @abstractmethod
    async def get_by_transaction_id(self, txn_id: str) -> Optional[PaymentRecord]:
        """Return the payment with txn_id, or None."""


class ProcessorClient(ABC):
    """Port for the external payment processor."""

    @abstractmethod
    async def create_transaction(
        self,
        amount: Decimal,
        currency: str,
        item_name: str,
        buyer_email: str,
    ) -> Dict[str, Any]:
        """
        Create a transaction at the processor.

        Returns the processor's full response; ``response["result"]["txn_id"]``
        holds the assigned transaction ID.

        Raises:
            UpstreamError: If the call fails or the processor reports an error
        """

    async def close(self) -> None:
        """Release any held connections."""
