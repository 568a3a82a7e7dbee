"""Gateway core: lifecycle, dispatch and event fan-out."""

from .address import AddressCheck, normalize_address
from .bus import EventBus, Subscription
from .dispatch import DispatchJob, DispatchQueue, JobProgress, JobState
from .events import BroadcastEvent
from .exceptions import (
    GatewayError,
    InvalidRequestError,
    SendFailedError,
    SendTimeoutError,
    SessionNotReadyError,
)
from .lifecycle import ConnectionManager, ConnectionState, ConnectionStatus
from .models import InboundMessage
from .webhook import WebhookNotifier

__all__ = [
    "AddressCheck",
    "BroadcastEvent",
    "ConnectionManager",
    "ConnectionState",
    "ConnectionStatus",
    "DispatchJob",
    "DispatchQueue",
    "EventBus",
    "GatewayError",
    "InboundMessage",
    "InvalidRequestError",
    "JobProgress",
    "JobState",
    "SendFailedError",
    "SendTimeoutError",
    "SessionNotReadyError",
    "Subscription",
    "WebhookNotifier",
    "normalize_address",
]
