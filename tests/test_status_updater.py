"""
Tests for applying IPN status updates.
"""
from unittest.mock import AsyncMock

import pytest

from coinpayments_gateway.core.ports import PaymentStore
from coinpayments_gateway.core.status_updater import StatusUpdater
from coinpayments_gateway.database.store import SqlAlchemyPaymentStore


class TestStatusUpdater:
    """Test suite for StatusUpdater."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apply_updates_known_payment(self, store: SqlAlchemyPaymentStore) -> None:
        await store.insert(txn_id="T1", amount="10.50", currency="USDT", email="a@b.com")

        await StatusUpdater(store).apply("T1", "complete")

        record = await store.get_by_transaction_id("T1")
        assert record is not None
        assert record.status == "complete"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apply_unknown_payment_does_not_raise(
        self, store: SqlAlchemyPaymentStore
    ) -> None:
        await StatusUpdater(store).apply("UNKNOWN", "complete")

        assert await store.get_by_transaction_id("UNKNOWN") is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apply_stores_status_verbatim(self) -> None:
        mock_store = AsyncMock(spec=PaymentStore)
        mock_store.update_status_by_transaction_id.return_value = 1

        await StatusUpdater(mock_store).apply("T1", "100")

        mock_store.update_status_by_transaction_id.assert_awaited_once_with("T1", "100")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_apply_repeated_status_is_idempotent(
        self, store: SqlAlchemyPaymentStore
    ) -> None:
        await store.insert(txn_id="T1", amount="1", currency="USDT")
        updater = StatusUpdater(store)

        await updater.apply("T1", "complete")
        await updater.apply("T1", "complete")

        record = await store.get_by_transaction_id("T1")
        assert record is not None
        assert record.status == "complete"
