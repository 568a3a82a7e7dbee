"""Transport seam: session contract, credentials and backend loading."""

from .base import (
    ConnectionUpdate,
    DisconnectReason,
    InboundEnvelope,
    Receipt,
    SessionFactory,
    TransportSession,
    is_terminal_close,
)
from .credentials import CredentialStore, FileCredentialStore
from .factory import load_session_class

__all__ = [
    "ConnectionUpdate",
    "CredentialStore",
    "DisconnectReason",
    "FileCredentialStore",
    "InboundEnvelope",
    "Receipt",
    "SessionFactory",
    "TransportSession",
    "is_terminal_close",
    "load_session_class",
]
