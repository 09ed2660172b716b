"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from blinks_relay.config import get_settings
from blinks_relay.container import RelayContainer, build_container
from blinks_relay.errors import (
    ComplianceRejected,
    ConfigurationError,
    InvalidStateTransition,
    NotFoundError,
    RelayError,
    SimulationError,
    SimulationUnexpectedError,
    TransactionFailed,
    TransactionRejected,
    TransportError,
    ValidationError,
)
from blinks_relay.ledger.database import close_db, get_session_factory, init_db
from blinks_relay.safety import redact_secrets

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS_CODES: list[tuple[type, int]] = [
    (ComplianceRejected, 403),
    (InvalidStateTransition, 409),
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConfigurationError, 503),
    (SimulationError, 422),
    (SimulationUnexpectedError, 502),
    (TransportError, 503),
    (TransactionRejected, 422),
    (TransactionFailed, 422),
]


def status_code_for(error: RelayError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return code
    return 500


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    """Return category + generic message only; details go to the log."""
    code = status_code_for(exc)
    log = logger.error if code >= 500 else logger.info
    log(f"{request.method} {request.url.path} -> {code} {exc.category}: {redact_secrets(str(exc))}")
    return JSONResponse(status_code=code, content=exc.public_dict())


def create_app(container: Optional[RelayContainer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Pre-built components. When omitted, the lifespan builds
            them from settings and owns the database and event loop.
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        if container is not None:
            app.state.container = container
            yield
            return

        # Startup
        await init_db()
        owned = build_container(settings, get_session_factory())
        app.state.container = owned
        if owned.event_loop is not None:
            owned.event_loop.start()
        yield
        # Shutdown
        await owned.close()
        await close_db()

    app = FastAPI(
        title="Blinks Relay API",
        description="Non-custodial fee-sponsored payments on Stellar/Soroban",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )
    if container is not None:
        app.state.container = container

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RelayError, relay_error_handler)

    # Register routes
    from blinks_relay.api.routes import health, links, payments, transfers

    app.include_router(health.router, tags=["Health"])
    app.include_router(payments.router, prefix="/api/v1", tags=["Payments"])
    app.include_router(transfers.router, prefix="/api/v1", tags=["Transfers"])
    app.include_router(links.router, prefix="/api/v1", tags=["Payment Links"])

    return app
