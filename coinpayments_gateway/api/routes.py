"""
API routes for payment creation and IPN handling.
"""
import json
import time
from typing import Any, Dict
from urllib.parse import parse_qsl

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import ValidationError as SchemaValidationError

from coinpayments_gateway.config import Settings
from coinpayments_gateway.core.exceptions import (
    AuthenticationError,
    ConflictError,
    PaymentError,
    UpstreamError,
    ValidationError,
)
from coinpayments_gateway.core.payment_service import PaymentService
from coinpayments_gateway.core.ports import PaymentStore
from coinpayments_gateway.core.status_updater import StatusUpdater
from coinpayments_gateway.integrations.ipn_verifier import IPNVerifier
from coinpayments_gateway.monitoring.health import HealthCheck
from coinpayments_gateway.monitoring.metrics import metrics

from .schemas import (
    CreatePaymentRequest,
    ErrorResponse,
    HealthCheckResponse,
    IPNNotification,
    PaymentStatusResponse,
)

logger = structlog.get_logger(__name__)

CREATE_FAILED_MESSAGE = "Failed to create transaction"
INVALID_IPN_MESSAGE = "Invalid IPN"

payment_router = APIRouter(prefix="/api/payments", tags=["payments"])
monitoring_router = APIRouter(tags=["monitoring"])


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_payment_store(request: Request) -> PaymentStore:
    return request.app.state.payment_store


def get_ipn_verifier(request: Request) -> IPNVerifier:
    return request.app.state.ipn_verifier


def get_status_updater(request: Request) -> StatusUpdater:
    return request.app.state.status_updater


def get_health_check(request: Request) -> HealthCheck:
    return request.app.state.health_check


def create_failed_response() -> JSONResponse:
    """The single error response every payment creation failure maps to."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": CREATE_FAILED_MESSAGE},
    )


def parse_ipn_body(body: bytes, content_type: str) -> IPNNotification:
    """
    Decode a verified IPN body.

    CoinPayments posts ``application/x-www-form-urlencoded``; JSON bodies
    are accepted as well.

    Raises:
        ValidationError: If the body cannot be decoded or lacks required fields
    """
    try:
        text = body.decode("utf-8")
        if "application/json" in content_type.lower():
            fields = json.loads(text)
            if not isinstance(fields, dict):
                raise ValidationError("IPN body must be an object")
        else:
            fields = dict(parse_qsl(text, keep_blank_values=True))
        return IPNNotification.model_validate(fields)
    except (UnicodeDecodeError, json.JSONDecodeError, SchemaValidationError) as e:
        raise ValidationError(f"Malformed IPN payload: {e}", e)


@payment_router.post(
    "/create",
    responses={500: {"model": ErrorResponse}},
    summary="Create a payment",
    description="Create a CoinPayments transaction and store it as pending",
)
async def create_payment(
    request: CreatePaymentRequest,
    payment_service: PaymentService = Depends(get_payment_service),
) -> Any:
    """
    Create a new payment.

    Returns the processor's response, including ``result.checkout_url``.
    """
    start_time = time.time()

    try:
        result = await payment_service.create_payment(
            amount=request.amount,
            currency=request.currency,
            item_name=request.item_name,
            email=request.email,
        )
        metrics.record_payment_request("created", time.time() - start_time)
        return result

    except ValidationError as e:
        outcome = "validation_error"
        logger.warning("api_create_payment_validation_error", error=str(e))
    except UpstreamError as e:
        outcome = "upstream_error"
        logger.error("api_create_payment_upstream_error", error=str(e))
    except ConflictError as e:
        outcome = "conflict"
        logger.error("api_create_payment_conflict", error=str(e))
    except PaymentError as e:
        outcome = "error"
        logger.error("api_create_payment_error", error=str(e))
    except Exception as e:
        outcome = "error"
        logger.error("api_create_payment_unexpected_error", error=str(e))

    metrics.record_payment_request(outcome, time.time() - start_time)
    return create_failed_response()


@payment_router.post(
    "/ipn",
    response_class=PlainTextResponse,
    summary="CoinPayments IPN endpoint",
    description="Receive signed status notifications from CoinPayments",
)
async def coinpayments_ipn(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    verifier: IPNVerifier = Depends(get_ipn_verifier),
    status_updater: StatusUpdater = Depends(get_status_updater),
) -> PlainTextResponse:
    """
    Handle a CoinPayments IPN.

    The signature is checked against the raw body before anything is parsed.
    """
    body = await request.body()
    signature = request.headers.get(settings.coinpayments_ipn_header)

    try:
        if not verifier.verify(body, signature):
            raise AuthenticationError("IPN signature mismatch")

        notification = parse_ipn_body(body, request.headers.get("content-type", ""))

        expected_merchant = settings.coinpayments_merchant_id
        if (
            expected_merchant
            and notification.merchant is not None
            and notification.merchant != expected_merchant
        ):
            raise AuthenticationError("IPN merchant mismatch")

    except AuthenticationError as e:
        metrics.record_ipn("rejected")
        logger.warning("api_ipn_rejected", reason=str(e))
        return PlainTextResponse(INVALID_IPN_MESSAGE, status_code=status.HTTP_403_FORBIDDEN)

    except ValidationError as e:
        metrics.record_ipn("malformed")
        logger.warning("api_ipn_malformed", error=str(e))
        return PlainTextResponse(
            f"{INVALID_IPN_MESSAGE} payload", status_code=status.HTTP_400_BAD_REQUEST
        )

    logger.info(
        "api_ipn_received",
        txn_id=notification.txn_id,
        status=notification.status,
    )
    await status_updater.apply(notification.txn_id, notification.status)

    return PlainTextResponse("OK")


@payment_router.get(
    "/{txn_id}",
    response_model=PaymentStatusResponse,
    summary="Get payment status",
    description="Retrieve a stored payment by its CoinPayments transaction ID",
)
async def get_payment_status(
    txn_id: str,
    store: PaymentStore = Depends(get_payment_store),
) -> Dict[str, Any]:
    """Get payment by transaction ID."""
    record = await store.get_by_transaction_id(txn_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return record.to_dict()


@monitoring_router.get(
    "/health",
    response_model=HealthCheckResponse,
    summary="Health check",
    description="Check overall system health",
)
async def health(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Health check endpoint for monitoring."""
    return await health_check.check_all()


@monitoring_router.get(
    "/health/live",
    response_model=HealthCheckResponse,
    summary="Liveness probe",
)
async def liveness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Liveness probe endpoint."""
    return await health_check.liveness()


@monitoring_router.get(
    "/health/ready",
    response_model=HealthCheckResponse,
    summary="Readiness probe",
)
async def readiness(health_check: HealthCheck = Depends(get_health_check)) -> Dict[str, Any]:
    """Readiness probe endpoint."""
    result = await health_check.readiness()
    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)
    return result


@monitoring_router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def prometheus_metrics() -> Response:
    """Expose Prometheus metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
