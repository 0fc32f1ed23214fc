from __future__ import annotations

import logging
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import Settings
from .endpoints.pin_block import router as pin_block_router
from .exceptions import PinBlockServiceError
from .models.api import APIError, HealthResponse
from .pin_block import PinBlockCodec
from .protocol import PinBlockProtocol
from .transport import TransportCipher, TransportKeyPair
from .zone_key import create_zone_key_cipher

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog processors and level filtering."""
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=False,
    )


def build_protocol(settings: Settings) -> PinBlockProtocol:
    """Create the process-wide keys and the protocol that uses them."""
    if settings.transport_private_key_path:
        key_pair = TransportKeyPair.from_file(settings.transport_private_key_path)
    else:
        key_pair = TransportKeyPair.generate(settings.transport_key_size)

    return PinBlockProtocol(
        transport=TransportCipher(key_pair),
        zone_cipher=create_zone_key_cipher(settings.zone_key_hex),
        codec=PinBlockCodec(strict=settings.pin_decode_strict),
    )


def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    payload = APIError(error=error, message=message, details=details)
    return JSONResponse(payload.model_dump(mode="json"), status_code=status_code)


async def service_error_handler(request: Request, exc: PinBlockServiceError) -> JSONResponse:
    logger.warning(
        "Request failed",
        path=request.url.path,
        error_code=exc.error_code,
        error=exc.message,
    )
    return _error_response(exc.status_code, exc.error_code, exc.message, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    fields = [".".join(str(part) for part in err.get("loc", ()) if part != "body") for err in errors]
    if any(err.get("type") == "missing" for err in errors):
        message = "Missing required fields"
    else:
        message = "Invalid request body"

    logger.warning("Request validation failed", path=request.url.path, fields=fields)
    return _error_response(400, "validation_error", message, {"fields": fields})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", path=request.url.path, error_type=type(exc).__name__, exc_info=exc)
    return _error_response(500, "internal_error", "Processing failed")


def create_app(
    settings: Optional[Settings] = None,
    protocol: Optional[PinBlockProtocol] = None,
) -> FastAPI:
    """Build the app. Keys are created here once unless a protocol is supplied."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)

    app = FastAPI(title="PIN Block Zone Service", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.protocol = protocol or build_protocol(settings)

    app.add_exception_handler(PinBlockServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Bare paths, plus the /api prefix the browser client calls
    app.include_router(pin_block_router)
    app.include_router(pin_block_router, prefix="/api")

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        protocol: PinBlockProtocol = request.app.state.protocol
        return HealthResponse(
            version=__version__,
            zone_key_algorithm=protocol.zone_cipher.algorithm,
            zone_key_check_value=protocol.zone_cipher.key_check_value(),
            transport_key_size=protocol.transport.key_pair.key_size,
        )

    logger.info(
        "PIN block service ready",
        zone_key_algorithm=app.state.protocol.zone_cipher.algorithm,
        strict_decode=settings.pin_decode_strict,
    )
    return app
