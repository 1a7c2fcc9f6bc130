"""
SQLAlchemy implementation of the payment store.

Each call runs in its own short transaction so every read and write goes
straight to the database.
"""
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coinpayments_gateway.core.exceptions import ConflictError, ValidationError
from coinpayments_gateway.core.ports import PaymentRecord, PaymentStore, parse_amount
from coinpayments_gateway.database.models import Payment

logger = structlog.get_logger(__name__)


def _to_record(payment: Payment) -> PaymentRecord:
    return PaymentRecord(
        id=payment.id,
        txn_id=payment.txn_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        email=payment.email,
        created_at=payment.created_at,
    )


class SqlAlchemyPaymentStore(PaymentStore):
    """PaymentStore backed by the ``payments`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert(
        self,
        txn_id: str,
        amount: Decimal | str,
        currency: str,
        status: str = "pending",
        email: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Insert a payment record.

        Args:
            txn_id: Processor-assigned transaction ID
            amount: Positive amount
            currency: Currency code
            status: Initial status
            email: Optional buyer email

        Returns:
            PaymentRecord: The stored record

        Raises:
            ValidationError: If txn_id, amount or currency are invalid
            ConflictError: If txn_id is already stored
        """
        if not txn_id:
            raise ValidationError("Transaction ID is required")
        if not currency:
            raise ValidationError("Currency is required")
        parsed_amount = parse_amount(amount)

        payment = Payment(
            txn_id=txn_id,
            amount=parsed_amount,
            currency=currency,
            status=status,
            email=email,
        )

        try:
            async with self._session_factory.begin() as session:
                session.add(payment)
                await session.flush()
                await session.refresh(payment)
                record = _to_record(payment)
        except IntegrityError as e:
            logger.warning("payment_insert_conflict", txn_id=txn_id)
            raise ConflictError(f"Payment {txn_id} already exists", e)

        logger.info(
            "payment_record_inserted",
            payment_id=record.id,
            txn_id=txn_id,
            amount=str(parsed_amount),
            currency=currency,
            status=status,
        )
        return record

    async def update_status_by_transaction_id(self, txn_id: str, status: str) -> int:
        """
        Update the status of a payment.

        An unmatched txn_id is a no-op and returns 0.
        """
        stmt = update(Payment).where(Payment.txn_id == txn_id).values(status=status)
        async with self._session_factory.begin() as session:
            result = await session.execute(stmt)

        rows_updated = result.rowcount
        logger.info(
            "payment_status_updated",
            txn_id=txn_id,
            status=status,
            rows_updated=rows_updated,
        )
        return rows_updated

    async def get_by_transaction_id(self, txn_id: str) -> Optional[PaymentRecord]:
        stmt = select(Payment).where(Payment.txn_id == txn_id)
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            payment = result.scalar_one_or_none()
            return _to_record(payment) if payment is not None else None
