"""
CoinPayments API client.

Creates transactions through the ``create_transaction`` command of the
CoinPayments HTTP API. The account's public/private key pair is sent as
HTTP basic credentials; the IPN callback URL always comes from server
configuration.

Every failure (timeout, transport error, HTTP error status, unreadable
body, ``error != "ok"``) is raised as ``UpstreamError``. Calls are not
retried.
"""
import time
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx
import structlog

from coinpayments_gateway.config import Settings, get_settings
from coinpayments_gateway.core.exceptions import UpstreamError
from coinpayments_gateway.core.ports import ProcessorClient
from coinpayments_gateway.monitoring.metrics import metrics

logger = structlog.get_logger(__name__)

API_VERSION = "1"


class CoinPaymentsClient(ProcessorClient):
    """
    Async wrapper for the CoinPayments API.

    Owns an ``httpx.AsyncClient``; call ``close()`` on shutdown.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize CoinPayments client.

        Args:
            settings: Optional settings (uses cached settings if not provided)
            transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.settings = settings or get_settings()
        self._http = httpx.AsyncClient(
            auth=httpx.BasicAuth(
                self.settings.coinpayments_public_key,
                self.settings.coinpayments_private_key,
            ),
            timeout=httpx.Timeout(self.settings.coinpayments_timeout_seconds),
            transport=transport,
        )

        logger.info(
            "coinpayments_client_initialized",
            api_url=self.settings.coinpayments_api_url,
            timeout_seconds=self.settings.coinpayments_timeout_seconds,
        )

    def _fail(self, reason: str, message: str, error: Optional[Exception] = None) -> UpstreamError:
        metrics.record_processor_error(reason)
        logger.error("coinpayments_api_error", reason=reason, error=message)
        return UpstreamError(message, error)

    async def _call(self, command: str, fields: Dict[str, str]) -> Dict[str, Any]:
        payload = {"version": API_VERSION, "cmd": command, "format": "json", **fields}
        start_time = time.time()

        try:
            response = await self._http.post(self.settings.coinpayments_api_url, data=payload)
        except httpx.TimeoutException as e:
            raise self._fail("timeout", f"CoinPayments {command} timed out", e)
        except httpx.HTTPError as e:
            raise self._fail("transport", f"CoinPayments {command} request failed: {e}", e)
        finally:
            metrics.record_processor_call(command, time.time() - start_time)

        if response.is_error:
            raise self._fail(
                "http_status",
                f"CoinPayments {command} returned HTTP {response.status_code}",
            )

        try:
            body = response.json()
        except ValueError as e:
            raise self._fail("invalid_response", f"CoinPayments {command} returned non-JSON body", e)

        if not isinstance(body, dict):
            raise self._fail("invalid_response", f"CoinPayments {command} returned unexpected body")

        if body.get("error") != "ok":
            raise self._fail("api_error", f"CoinPayments {command} failed: {body.get('error')}")

        return body

    async def create_transaction(
        self,
        amount: Decimal,
        currency: str,
        item_name: str,
        buyer_email: str,
    ) -> Dict[str, Any]:
        """
        Create a CoinPayments transaction.

        Args:
            amount: Amount to charge
            currency: Currency code used for both price and payment currency
            item_name: Item description shown at checkout
            buyer_email: Buyer's email address

        Returns:
            Dict[str, Any]: Full API response; ``result`` holds ``txn_id`` and
            ``checkout_url``

        Raises:
            UpstreamError: If the transaction could not be created
        """
        logger.info(
            "creating_coinpayments_transaction",
            amount=str(amount),
            currency=currency,
            item_name=item_name,
        )

        body = await self._call(
            "create_transaction",
            {
                "amount": format(amount, "f"),
                "currency1": currency,
                "currency2": currency,
                "buyer_email": buyer_email,
                "item_name": item_name,
                "ipn_url": self.settings.coinpayments_ipn_url,
            },
        )

        result = body.get("result")
        if not isinstance(result, dict) or not result.get("txn_id"):
            raise self._fail("invalid_response", "CoinPayments response has no transaction ID")

        logger.info(
            "coinpayments_transaction_created",
            txn_id=result["txn_id"],
        )
        return body

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
