"""
Payment creation flow.

1. Validate input
2. Create the transaction at CoinPayments
3. Store the payment record (status ``pending``)
4. Return the processor response

The processor call and the insert are not atomic: if the insert fails
after the processor accepted the transaction, the remote transaction has
no local record. That case is logged with the transaction ID.
"""
import uuid
from typing import Any, Dict, Optional

import structlog

from coinpayments_gateway.config import Settings, get_settings
from coinpayments_gateway.core.exceptions import PaymentError, ValidationError
from coinpayments_gateway.core.ports import PaymentStore, ProcessorClient, parse_amount

logger = structlog.get_logger(__name__)

INITIAL_STATUS = "pending"


class PaymentService:
    """Orchestrates creation of new payments."""

    def __init__(
        self,
        store: PaymentStore,
        processor: ProcessorClient,
        settings: Optional[Settings] = None,
    ) -> None:
        self.store = store
        self.processor = processor
        self.settings = settings or get_settings()

    @staticmethod
    def _validate_payment_request(amount: Any, email: Optional[str]) -> None:
        """
        Validate payment request parameters.

        Raises:
            ValidationError: If validation fails
        """
        if amount is None or (isinstance(amount, str) and not amount.strip()):
            raise ValidationError("Amount is required")

        if not email or not email.strip():
            raise ValidationError("Email is required")

    async def create_payment(
        self,
        amount: Any,
        currency: Optional[str],
        item_name: Optional[str],
        email: Optional[str],
    ) -> Dict[str, Any]:
        """
        Create a payment.

        Args:
            amount: Decimal amount (string or Decimal)
            currency: Currency code (configured default when empty)
            item_name: Item description (configured default when empty)
            email: Buyer email

        Returns:
            Dict[str, Any]: The processor's transaction response

        Raises:
            ValidationError: If input validation fails (no external call made)
            UpstreamError: If the processor call fails
            ConflictError: If the processor's transaction ID is already stored
        """
        correlation_id = str(uuid.uuid4())

        self._validate_payment_request(amount, email)
        parsed_amount = parse_amount(amount)
        currency = (currency or "").strip() or self.settings.coinpayments_currency
        item_name = (item_name or "").strip() or self.settings.default_item_name
        email = email.strip()

        logger.info(
            "payment_creation_started",
            correlation_id=correlation_id,
            amount=str(parsed_amount),
            currency=currency,
        )

        response = await self.processor.create_transaction(
            amount=parsed_amount,
            currency=currency,
            item_name=item_name,
            buyer_email=email,
        )
        txn_id = response["result"]["txn_id"]

        try:
            record = await self.store.insert(
                txn_id=txn_id,
                amount=parsed_amount,
                currency=currency,
                status=INITIAL_STATUS,
                email=email,
            )
        except PaymentError as e:
            logger.error(
                "payment_record_insert_failed",
                correlation_id=correlation_id,
                txn_id=txn_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        logger.info(
            "payment_created_successfully",
            correlation_id=correlation_id,
            payment_id=record.id,
            txn_id=txn_id,
            status=record.status,
        )
        return response
