"""
Main FastAPI application.

Payment intake API with:
- CORS configuration
- Error handling
- Request ID tracking
- Structured logging
- Prometheus metrics

Run with ``uvicorn coinpayments_gateway.api.main:create_app --factory``
or ``python -m coinpayments_gateway.api.main``.
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coinpayments_gateway import __version__
from coinpayments_gateway.config import Settings, get_settings
from coinpayments_gateway.core.payment_service import PaymentService
from coinpayments_gateway.core.ports import PaymentStore, ProcessorClient
from coinpayments_gateway.core.status_updater import StatusUpdater
from coinpayments_gateway.database.connection import Database
from coinpayments_gateway.database.store import SqlAlchemyPaymentStore
from coinpayments_gateway.integrations.coinpayments_client import CoinPaymentsClient
from coinpayments_gateway.integrations.ipn_verifier import IPNVerifier
from coinpayments_gateway.monitoring.health import HealthCheck
from coinpayments_gateway.monitoring.logging import setup_logging

from .routes import create_failed_response, monitoring_router, payment_router

logger = structlog.get_logger(__name__)

CREATE_PAYMENT_PATH = "/api/payments/create"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
    """
    Application lifespan manager.

    Creates the schema on startup; releases the processor client and the
    connection pool on shutdown.
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    logger.info(
        "application_startup",
        app_name=settings.app_name,
        env=settings.app_env,
    )

    try:
        await database.init_db()
        logger.info("database_initialized")
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e))
        raise

    yield

    logger.info("application_shutdown")
    try:
        await app.state.processor_client.close()
        await database.close()
        logger.info("connections_closed")
    except Exception as e:
        logger.error("shutdown_error", error=str(e))


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    processor_client: Optional[ProcessorClient] = None,
    payment_store: Optional[PaymentStore] = None,
) -> FastAPI:
    """
    Build the application and its dependencies.

    Args:
        settings: Optional settings (uses cached settings if not provided)
        database: Optional database holder
        processor_client: Optional processor client (CoinPayments by default)
        payment_store: Optional store (SQLAlchemy store on ``database`` by default)

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    database = database or Database(settings)
    processor_client = processor_client or CoinPaymentsClient(settings)
    payment_store = payment_store or SqlAlchemyPaymentStore(database.session_factory)

    app = FastAPI(
        title="CoinPayments Gateway",
        description=(
            "Creates CoinPayments transactions, stores them as pending payments "
            "and applies signed IPN status updates."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    app.state.settings = settings
    app.state.database = database
    app.state.processor_client = processor_client
    app.state.payment_store = payment_store
    app.state.payment_service = PaymentService(payment_store, processor_client, settings)
    app.state.ipn_verifier = IPNVerifier(settings.coinpayments_ipn_secret)
    app.state.status_updater = StatusUpdater(payment_store)
    app.state.health_check = HealthCheck(database)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """
        Add request ID to all requests for tracing.

        Also adds timing information and structured logging context.
        """
        request_id = str(uuid.uuid4())
        start_time = time.time()

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        logger.info(
            "request_started",
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_seconds=time.time() - start_time,
            )
            return response

        except Exception as e:
            logger.error(
                "request_failed",
                error=str(e),
                duration_seconds=time.time() - start_time,
            )
            raise

        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> Response:
        """Report unreadable payment creation bodies as a creation failure."""
        if request.url.path == CREATE_PAYMENT_PATH:
            logger.warning("api_create_payment_invalid_body", errors=str(exc.errors()))
            return create_failed_response()
        return await request_validation_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled exceptions.
        """
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    app.include_router(payment_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "coinpayments_gateway.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
