"""Batch Fraud Screening Service.

This service screens batches of transactions against caller-supplied rules
and the pattern-detection engine, and records every verdict in PostgreSQL.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from fraud_screening.api.routes import api_router
from fraud_screening.core.auth import close_async_http_client
from fraud_screening.core.config import AppEnvironment, Settings, get_settings
from fraud_screening.core.database import create_async_engine, create_session_factory
from fraud_screening.core.errors import FraudScreeningError, get_status_code
from fraud_screening.core.logging import setup_logging
from fraud_screening.detection.pattern_detector import HttpPatternDetector

logger = logging.getLogger(__name__)

# API version prefix
API_V1_PREFIX = "/api/v1"

INTERNAL_ERROR_DETAIL = "Internal server error"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Create the connection pool and detector client once per process."""
    settings = get_settings()
    setup_logging(settings)

    logger.info(
        "Starting Fraud Screening Service",
        extra={
            "app": settings.app.name,
            "env": settings.app.env,
            "version": settings.app.version,
        },
    )

    engine = create_async_engine(settings.database)
    detector = HttpPatternDetector(settings.detector)

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.detector = detector

    yield

    await detector.aclose()
    await close_async_http_client()
    await engine.dispose()

    logger.info("Fraud Screening Service stopped")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Fraud Screening API",
        description=(
            "Batch fraud screening: custom rules first, pattern detection as fallback, "
            "every verdict recorded."
        ),
        version=settings.app.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.app.env != AppEnvironment.PROD else None,
        redoc_url="/redoc" if settings.app.env != AppEnvironment.PROD else None,
        openapi_url="/openapi.json" if settings.app.env != AppEnvironment.PROD else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_allowed_origins,
        allow_credentials=settings.security.cors_allow_credentials,
        allow_methods=settings.security.cors_allow_methods,
        allow_headers=settings.security.cors_allow_headers,
    )

    app.include_router(api_router, prefix=API_V1_PREFIX)

    setup_telemetry(app, settings)

    @app.exception_handler(FraudScreeningError)
    async def domain_error_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: FraudScreeningError
    ) -> JSONResponse:
        """Map domain errors to HTTP responses; 5xx responses carry no detail."""
        status_code = get_status_code(exc)
        if status_code >= 500:
            logger.error(
                "Request failed",
                exc_info=exc,
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "error": exc.message,
                    "details": exc.details,
                },
            )
            return JSONResponse(status_code=status_code, content={"detail": INTERNAL_ERROR_DETAIL})

        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, **({"errors": exc.details} if exc.details else {})},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(  # type: ignore[reportUnusedFunction]
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions and return 500 error responses."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
        )
        return JSONResponse(
            status_code=500,
            content={"detail": INTERNAL_ERROR_DETAIL},
        )

    return app


def setup_telemetry(app: FastAPI, settings: Settings) -> None:
    """Setup OpenTelemetry instrumentation."""
    if not settings.observability.otlp_endpoint:
        return

    resource = Resource(
        attributes={
            SERVICE_NAME: settings.observability.service_name,
        }
    )

    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.observability.otlp_endpoint,
        insecure=settings.observability.otlp_insecure,
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    FastAPIInstrumentor.instrument_app(app)


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "fraud_screening.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.app.env == AppEnvironment.LOCAL,
        workers=1 if settings.app.env == AppEnvironment.LOCAL else settings.server.workers,
        log_level=settings.app.log_level.lower(),
    )


if __name__ == "__main__":
    run()
