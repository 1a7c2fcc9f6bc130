"""Applies verified IPN status changes to stored payments."""
import structlog

from coinpayments_gateway.core.ports import PaymentStore
from coinpayments_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)


class StatusUpdater:
    """
    Moves a payment to the status reported by a verified IPN.

    Only call this after the IPN signature has been verified. The status
    string is stored as sent by the processor.
    """

    def __init__(self, store: PaymentStore) -> None:
        self.store = store

    async def apply(self, txn_id: str, status: str) -> None:
        """
        Apply a status to the payment with txn_id.

        An unknown txn_id (duplicate, out-of-order or foreign IPN) is logged
        and otherwise ignored so the processor still gets a success response.
        """
        rows_updated = await self.store.update_status_by_transaction_id(txn_id, status)

        if rows_updated == 0:
            logger.warning("ipn_unknown_transaction", txn_id=txn_id, status=status)
            metrics.record_ipn("unmatched")
            return

        logger.info("ipn_status_applied", txn_id=txn_id, status=status)
        metrics.record_ipn("applied")
