"""
Pytest configuration and fixtures.
"""
import hashlib
import hmac
from decimal import Decimal
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from coinpayments_gateway.api.main import create_app
from coinpayments_gateway.config import Settings
from coinpayments_gateway.core.ports import ProcessorClient
from coinpayments_gateway.database.connection import Database
from coinpayments_gateway.database.store import SqlAlchemyPaymentStore

IPN_SECRET = "ipn_test_secret"
MERCHANT_ID = "merchant_test"


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond SQLite")
    config.addinivalue_line("markers", "integration: tests that drive the HTTP API")
    config.addinivalue_line("markers", "race: concurrency tests")


def sign(body: bytes, secret: str = IPN_SECRET) -> str:
    """HMAC-SHA512 hex digest the way CoinPayments signs IPNs."""
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


@pytest.fixture
def sign_ipn() -> Callable[..., str]:
    return sign


class FakeProcessorClient(ProcessorClient):
    """In-process stand-in for CoinPayments."""

    def __init__(
        self,
        txn_ids: Optional[List[str]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.txn_ids = list(txn_ids or ["T1"])
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    async def create_transaction(
        self,
        amount: Decimal,
        currency: str,
        item_name: str,
        buyer_email: str,
    ) -> Dict[str, Any]:
        self.calls.append(
            {
                "amount": amount,
                "currency": currency,
                "item_name": item_name,
                "buyer_email": buyer_email,
            }
        )
        if self.error is not None:
            raise self.error

        txn_id = self.txn_ids.pop(0) if len(self.txn_ids) > 1 else self.txn_ids[0]
        return {
            "error": "ok",
            "result": {
                "txn_id": txn_id,
                "amount": str(amount),
                "address": "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE",
                "checkout_url": f"https://www.coinpayments.net/index.php?cmd=checkout&id={txn_id}",
                "status_url": f"https://www.coinpayments.net/index.php?cmd=status&id={txn_id}",
            },
        }

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def test_settings(tmp_path: Any) -> Settings:
    """Create test settings backed by a per-test SQLite file."""
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'payments.db'}",
        coinpayments_merchant_id=MERCHANT_ID,
        coinpayments_public_key="pub_test_key",
        coinpayments_private_key="priv_test_key",
        coinpayments_ipn_secret=IPN_SECRET,
        coinpayments_ipn_url="https://gateway.test/api/payments/ipn",
        coinpayments_currency="USDT",
        app_name="coinpayments-gateway-test",
        app_env="test",
        log_level="DEBUG",
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database, Any]:
    """Create test database with the schema in place."""
    db = Database(test_settings)
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> SqlAlchemyPaymentStore:
    return SqlAlchemyPaymentStore(database.session_factory)


@pytest.fixture
def processor() -> FakeProcessorClient:
    return FakeProcessorClient()


@pytest_asyncio.fixture
async def client(
    test_settings: Settings,
    database: Database,
    processor: FakeProcessorClient,
) -> AsyncGenerator[AsyncClient, Any]:
    """Create test HTTP client."""
    app = create_app(settings=test_settings, database=database, processor_client=processor)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def sample_payment_data() -> Dict[str, Any]:
    """Sample payment request data."""
    return {
        "amount": "10.50",
        "currency": "USDT",
        "itemName": "Sub",
        "email": "a@b.com",
    }
