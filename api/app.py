"""FastAPI application factory and configuration."""

import asyncio
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from config.logging_config import configure_logging
from config.settings import get_settings
from messaging.bus import EventBus
from messaging.dispatch import DispatchQueue
from messaging.exceptions import GatewayError
from messaging.lifecycle import ConnectionManager
from messaging.webhook import WebhookNotifier
from transport.credentials import FileCredentialStore
from transport.factory import load_session_class

from .routes import router

# Configure logging first (before any module logs)
_settings = get_settings()
configure_logging(_settings.log_file, _settings.log_level)


_SHUTDOWN_TIMEOUT_S = 5.0


async def _best_effort(
    name: str, awaitable, timeout_s: float = _SHUTDOWN_TIMEOUT_S
) -> None:
    """Run a shutdown step with timeout; never raise to callers."""
    try:
        await asyncio.wait_for(awaitable, timeout=timeout_s)
    except TimeoutError:
        logger.warning(f"Shutdown step timed out: {name} ({timeout_s}s)")
    except Exception as e:
        logger.warning(f"Shutdown step failed: {name}: {type(e).__name__}: {e}")


def _log_start_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Failed to start transport: {type(exc).__name__}: {exc}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting messaging gateway...")

    bus = EventBus(buffer_size=settings.observer_buffer_size)
    webhook = None
    connection = None
    start_task = None

    if settings.webhook_url:
        webhook = WebhookNotifier(settings.webhook_url, timeout=settings.webhook_timeout)
        logger.info(f"Forwarding inbound messages to {settings.webhook_url}")

    try:
        session_cls = load_session_class(settings.transport_backend)
        if session_cls:
            connection = ConnectionManager(
                session_factory=session_cls,
                credential_store=FileCredentialStore(settings.auth_dir),
                bus=bus,
                webhook=webhook,
                backoff_s=settings.reconnect_delay,
                max_backoff_s=settings.reconnect_max_delay,
                connect_timeout=settings.connect_timeout,
            )
            # Connect in the background so HTTP is served during the handshake
            start_task = asyncio.create_task(connection.start())
            start_task.add_done_callback(_log_start_failure)
    except (ImportError, TypeError) as e:
        logger.error(f"Transport backend unavailable: {e}")
        connection = None
    except Exception as e:
        logger.error(f"Failed to start transport: {type(e).__name__}: {e}")
        import traceback

        logger.error(traceback.format_exc())
        connection = None

    dispatch_queue = DispatchQueue(
        bus=bus,
        session_provider=connection.current_session if connection else (lambda: None),
        default_delay_ms=settings.default_delay_ms,
        send_timeout=settings.send_timeout,
        history_size=settings.job_history_size,
    )
    dispatch_queue.start()

    # Store in app state for access in routes
    app.state.event_bus = bus
    app.state.connection = connection
    app.state.dispatch_queue = dispatch_queue
    app.state.webhook = webhook

    yield

    logger.info("Shutdown requested, cleaning up...")
    await _best_effort("dispatch_queue.stop", dispatch_queue.stop())
    if start_task and not start_task.done():
        start_task.cancel()
        await asyncio.gather(start_task, return_exceptions=True)
    if connection:
        await _best_effort("connection.stop", connection.stop())
    bus.close_all()
    if webhook:
        await _best_effort("webhook.aclose", webhook.aclose())

    logger.info("Gateway shut down cleanly")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Messaging Gateway",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Register routes
    app.include_router(router)

    # Exception handlers
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        """Map gateway errors to their status code and JSON shape."""
        logger.warning(f"Gateway Error: {exc.error_type} - {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(Exception)
    async def general_error_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(f"General Error: {exc!s}")
        import traceback

        logger.error(traceback.format_exc())
        return JSONResponse(
            status_code=500,
            content={"ok": False, "error": "An unexpected error occurred.", "type": "api_error"},
        )

    return app


# Default app instance for uvicorn
app = create_app()
