"""Dependency injection for FastAPI."""

from fastapi import HTTPException, Request

from config.settings import Settings, get_settings as _get_settings
from messaging.bus import EventBus
from messaging.dispatch import DispatchQueue
from messaging.lifecycle import ConnectionManager


def get_settings() -> Settings:
    """Get application settings via dependency injection."""
    return _get_settings()


def _require_state(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"Gateway not initialized ({name})")
    return component


def get_event_bus(request: Request) -> EventBus:
    return _require_state(request, "event_bus")


def get_dispatch_queue(request: Request) -> DispatchQueue:
    return _require_state(request, "dispatch_queue")


def get_connection(request: Request) -> ConnectionManager | None:
    """Connection manager, or None when no transport backend is configured."""
    return getattr(request.app.state, "connection", None)
