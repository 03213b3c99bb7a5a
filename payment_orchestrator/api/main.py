"""
Main FastAPI application.

Payment orchestration API with:
- Gateway dispatch (Stripe, PayPal)
- Day-bucketed transaction ledger in Redis
- Webhook reconciliation
- Request ID tracking and structured logging
- Prometheus metrics
"""
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from payment_orchestrator import __version__
from payment_orchestrator.cache import RedisCacheStore
from payment_orchestrator.config import Settings, get_settings
from payment_orchestrator.exceptions import PaymentSystemError
from payment_orchestrator.monitoring.logging import (
    bind_request_context,
    clear_request_context,
    setup_logging,
)

from .deps import Services, build_services
from .routes import gateway_router, monitoring_router, webhook_router

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    services: Optional[Services] = None,
) -> FastAPI:
    """
    Build the application.

    When ``services`` is given it is installed as-is and the lifespan does
    not open a Redis connection.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, Any]:
        logger.info(
            "application_startup",
            app_name=settings.app_name,
            env=settings.app_env,
            test_mode=settings.is_test_mode,
        )

        cache = None
        if getattr(app.state, "services", None) is None:
            cache = RedisCacheStore.from_url(
                settings.redis_url, socket_timeout=settings.redis_socket_timeout
            )
            app.state.services = build_services(settings, cache)
            logger.info("cache_connected", redis_url=settings.redis_url)

        yield

        logger.info("application_shutdown")
        if cache is not None:
            try:
                await cache.close()
                logger.info("cache_connection_closed")
            except Exception as e:
                logger.error("cache_shutdown_error", error=str(e))

    app = FastAPI(
        title="Payment Orchestrator",
        description=(
            "Routes payments to Stripe or PayPal, keeps a per-day transaction "
            "ledger and reconciles provider webhooks into status history."
        ),
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_allowed_origins_list(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_middleware(request: Request, call_next: Any) -> Response:
        """Tag every request with an ID and log its timing."""
        request_id = str(uuid.uuid4())
        start_time = time.time()

        bind_request_context(
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
            clear_request_context()

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("request_validation_failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(PaymentSystemError)
    async def payment_system_error_handler(
        request: Request, exc: PaymentSystemError
    ) -> JSONResponse:
        logger.error(
            "payment_system_error",
            error=exc.message,
            error_code=exc.error_code,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            },
        )

    app.include_router(gateway_router)
    app.include_router(webhook_router)
    app.include_router(monitoring_router)

    @app.get("/", tags=["root"])
    async def root() -> dict[str, Any]:
        """Root endpoint with API information."""
        return {
            "service": settings.app_name,
            "version": __version__,
            "status": "operational",
            "environment": settings.app_env,
            "test_mode": settings.is_test_mode,
            "docs": "/docs",
            "health": "/health",
            "metrics": "/metrics",
        }

    return app


def main() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "payment_orchestrator.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
