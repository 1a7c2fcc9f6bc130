"""
Tests for the CoinPayments API client.

Requests are served by ``httpx.MockTransport``; nothing leaves the process.
"""
import base64
from decimal import Decimal
from typing import Any, Callable, Dict, List
from urllib.parse import parse_qsl

import httpx
import pytest

from coinpayments_gateway.config import Settings
from coinpayments_gateway.core.exceptions import UpstreamError
from coinpayments_gateway.core.ports import parse_amount
from coinpayments_gateway.integrations.coinpayments_client import CoinPaymentsClient

OK_RESPONSE = {
    "error": "ok",
    "result": {
        "amount": "10.50000000",
        "txn_id": "CPTEST123",
        "address": "TQn9Y2khEsLJW1ChVWFMSMeRDow5KcbLSE",
        "confirms_needed": "10",
        "timeout": 9000,
        "checkout_url": "https://www.coinpayments.net/index.php?cmd=checkout&id=CPTEST123",
        "status_url": "https://www.coinpayments.net/index.php?cmd=status&id=CPTEST123",
        "qrcode_url": "https://www.coinpayments.net/qrgen.php?id=CPTEST123",
    },
}


def make_client(
    settings: Settings, handler: Callable[[httpx.Request], httpx.Response]
) -> CoinPaymentsClient:
    return CoinPaymentsClient(settings, transport=httpx.MockTransport(handler))


async def create(client: CoinPaymentsClient) -> Dict[str, Any]:
    return await client.create_transaction(
        amount=Decimal("10.50"),
        currency="USDT",
        item_name="Sub",
        buyer_email="a@b.com",
    )


class TestCoinPaymentsClient:
    """Test suite for CoinPaymentsClient."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_transaction_request(self, test_settings: Settings) -> None:
        requests: List[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=OK_RESPONSE)

        client = make_client(test_settings, handler)
        response = await create(client)
        await client.close()

        assert response == OK_RESPONSE

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == test_settings.coinpayments_api_url

        fields = dict(parse_qsl(request.content.decode()))
        assert fields == {
            "version": "1",
            "cmd": "create_transaction",
            "format": "json",
            "amount": "10.50",
            "currency1": "USDT",
            "currency2": "USDT",
            "buyer_email": "a@b.com",
            "item_name": "Sub",
            "ipn_url": "https://gateway.test/api/payments/ipn",
        }

        expected_auth = base64.b64encode(b"pub_test_key:priv_test_key").decode()
        assert request.headers["authorization"] == f"Basic {expected_auth}"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_api_error_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "Invalid API key", "result": []})

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="Invalid API key"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_status_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="Internal Server Error")

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="HTTP 500"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="timed out") as exc_info:
            await create(client)
        await client.close()

        assert isinstance(exc_info.value.original_error, httpx.ReadTimeout)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_connection_error_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="request failed"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_json_body_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>maintenance</html>")

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="non-JSON"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_txn_id_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "ok", "result": {"amount": "10.5"}})

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="no transaction ID"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_object_body_raises_upstream_error(self, test_settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["ok"])

        client = make_client(test_settings, handler)
        with pytest.raises(UpstreamError, match="unexpected body"):
            await create(client)
        await client.close()

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "amount, sent",
        [
            (parse_amount("1E+2"), "100"),
            (parse_amount("0.00000001"), "0.00000001"),
            (Decimal("2.5E+3"), "2500"),
        ],
    )
    async def test_amount_sent_in_plain_notation(
        self, test_settings: Settings, amount: Decimal, sent: str
    ) -> None:
        sent_fields: List[Dict[str, str]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent_fields.append(dict(parse_qsl(request.content.decode())))
            return httpx.Response(200, json=OK_RESPONSE)

        client = make_client(test_settings, handler)
        await client.create_transaction(
            amount=amount, currency="USDT", item_name="Sub", buyer_email="a@b.com"
        )
        await client.close()

        assert sent_fields[0]["amount"] == sent
