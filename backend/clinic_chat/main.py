"""Clinic Chat Backend Application.

This is the main entry point for the clinic chat backend service.
Dental clinic staff sign in, meet in invite-only rooms, exchange messages
with read receipts, and ask for AI summaries of recent conversation.

Modules:
    - identity: Google sign-in and user profiles
    - rooms: room creation, invite codes, membership
    - chat: message streams, sessions, WebSockets
    - summary: AI conversation summaries
    - store: DuckDB document store and live subscriptions

Run:
    uvicorn clinic_chat.main:app --app-dir backend
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .chat.router import router as chat_router
from .config import ClinicChatConfig, load_config
from .errors import ChatError
from .identity.router import router as identity_router
from .rooms.router import router as rooms_router
from .services import ChatServices
from .summary.router import router as summary_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# urllib3/httpx/httpcore log every TCP connection and TLS handshake.
for _noisy in (
    "urllib3",
    "urllib3.connectionpool",
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
    "google_genai",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def _apply_log_level(config: ClinicChatConfig) -> None:
    # `logging.level: "debug"` in clinic_chat.settings.yaml activates DEBUG output
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> {exc.status_code} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(
    config: Optional[ClinicChatConfig] = None,
    services: Optional[ChatServices] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration; loaded from the YAML files when omitted.
        services: Prebuilt service container (tests); built from ``config``
            when omitted.
    """
    if services is not None:
        config = services.config
    elif config is None:
        config = load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager for startup/shutdown events."""
        _apply_log_level(config)
        container = services or ChatServices(config)
        container.init()
        app.state.services = container
        logger.info(
            f"Clinic chat ready on http://{config.server.host}:{config.server.port} "
            f"(summary={'on' if config.summary.enabled else 'off'}, "
            f"notifier={'on' if config.notifier.enabled else 'off'})"
        )

        yield  # Application runs here

        await container.dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Clinic Chat API",
        description="Backend service for the dental clinic team chat",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(ChatError, chat_error_handler)

    app.include_router(identity_router)
    app.include_router(rooms_router)
    app.include_router(chat_router)
    app.include_router(summary_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


# Create FastAPI application from clinic_chat.settings.yaml / clinic_chat.secrets.yaml
app = create_app()
