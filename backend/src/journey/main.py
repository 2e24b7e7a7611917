"""FastAPI application entry point."""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy.exc import SQLAlchemyError

from journey import __version__
from journey.api.v1 import ab_tests, email_templates, health, journey, reminders
from journey.config import settings
from journey.middleware.logging import LoggingMiddleware, setup_logging
from journey.middleware.metrics import MetricsMiddleware
from journey.models.journey_stage import UnknownStageError
from journey.schemas.error import REMEDIATION_HINTS, ErrorCode, ErrorDetail, ErrorResponse

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info(
        "application_starting",
        env=settings.app_env,
        notification_mode="mock" if not settings.mailrelay_api_key else "mailrelay",
    )
    yield
    logger.info("application_shutting_down")


app = FastAPI(
    title="User Journey Analytics",
    description="Journey funnel analytics, stage roster, reminders and A/B-tested e-mail templates",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(LoggingMiddleware)

metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)


def request_id_for(request: Request) -> str:
    """Request id bound by LoggingMiddleware, or a fresh one."""
    return getattr(request.state, "request_id", None) or f"req_{uuid.uuid4().hex[:12]}"


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: list[ErrorDetail] | None = None,
    remediation: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        details=details,
        remediation=remediation,
        request_id=request_id_for(request),
        timestamp=datetime.utcnow(),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle Pydantic validation errors with structured response.

    Returns 422 with field-level details.
    """
    code_mapping = {
        "missing": ErrorCode.MISSING_REQUIRED_FIELD,
        "enum": ErrorCode.INVALID_ENUM_VALUE,
        "greater_than_equal": ErrorCode.VALUE_TOO_SMALL,
        "less_than_equal": ErrorCode.VALUE_TOO_LARGE,
        "string_too_short": ErrorCode.MISSING_REQUIRED_FIELD,
    }

    details = []
    for error in exc.errors():
        value = error.get("input")
        details.append(
            ErrorDetail(
                code=code_mapping.get(error["type"], "validation_error"),
                message=error["msg"],
                field=".".join(str(loc) for loc in error["loc"]),
                value=value if isinstance(value, (str, int, float, bool)) else None,
            )
        )

    logger.warning("validation_error", path=request.url.path, error_count=len(details))

    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        error="ValidationError",
        message="Request validation failed",
        details=details,
        remediation="Check the API documentation for the request format at /docs",
    )


@app.exception_handler(UnknownStageError)
async def unknown_stage_handler(request: Request, exc: UnknownStageError) -> JSONResponse:
    """
    Stored record carries a stage outside the vocabulary.

    Never coerced to a default stage: stage identity drives every aggregate.
    """
    logger.error("unknown_stage_in_store", path=request.url.path, value=str(exc.value))

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="DataIntegrityError",
        message=str(exc),
        details=[ErrorDetail(code=ErrorCode.UNKNOWN_STAGE, message=str(exc), value=str(exc.value))],
        remediation=REMEDIATION_HINTS.get(ErrorCode.UNKNOWN_STAGE),
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database errors: 503 with Retry-After."""
    logger.error(
        "database_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error_message=str(exc),
    )

    # Internal database details stay out of production responses
    error_message = "Database temporarily unavailable" if settings.app_env == "production" else str(exc)

    return error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        error="DatabaseError",
        message="A database error occurred",
        details=[ErrorDetail(code=ErrorCode.DATABASE_ERROR, message=error_message)],
        remediation=REMEDIATION_HINTS.get(ErrorCode.DATABASE_ERROR),
        headers={"Retry-After": "30"},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else: 500 with a safe message, full trace in the log."""
    logger.exception(
        "unhandled_exception",
        path=request.url.path,
        exception_type=type(exc).__name__,
    )

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="InternalServerError",
        message="An unexpected error occurred",
        details=[
            ErrorDetail(
                code=ErrorCode.INTERNAL_ERROR,
                message=str(exc) if settings.debug else "Internal server error",
            )
        ],
        remediation="Please contact support with the request ID",
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "service": "User Journey Analytics",
        "version": __version__,
        "status": "operational",
        "docs": "/docs",
    }


app.include_router(health.router, tags=["Health"])
app.include_router(journey.router, prefix="/v1")
app.include_router(reminders.router, prefix="/v1")
app.include_router(email_templates.router, prefix="/v1")
app.include_router(ab_tests.router, prefix="/v1")
