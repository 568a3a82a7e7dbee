"""Abstract transport session.

The wire protocol (pairing, encryption, framing) lives behind this
interface. The gateway core only sees connection updates, inbound message
envelopes, credential updates and ``send_text``.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import IntEnum
import time
from typing import Any, Literal, Optional

ConnectionPhase = Literal["connecting", "open", "close"]


class DisconnectReason(IntEnum):
    """Close status codes reported by the messaging transport."""

    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515


@dataclass(frozen=True)
class ConnectionUpdate:
    """A lifecycle notification from the transport."""

    connection: Optional[ConnectionPhase] = None
    qr: Optional[str] = None
    status_code: Optional[int] = None
    reason: Optional[str] = None

    @property
    def close_reason(self) -> str:
        """Human readable close reason: status code, error name or 'unknown'."""
        if self.status_code is not None:
            return str(int(self.status_code))
        return self.reason or "unknown"


def is_terminal_close(update: ConnectionUpdate) -> bool:
    """Only a logged-out session requires re-pairing; everything else reconnects."""
    return update.status_code == DisconnectReason.LOGGED_OUT


@dataclass(frozen=True)
class InboundEnvelope:
    """A raw inbound message as delivered by the transport."""

    id: str
    remote_jid: str
    from_me: bool = False
    timestamp: Optional[int] = None
    message: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class Receipt:
    """Transport acknowledgment for one sent message."""

    message_id: str
    address: str
    timestamp: float = field(default_factory=time.time)


ConnectionHandler = Callable[[ConnectionUpdate], Awaitable[None]]
MessagesHandler = Callable[[list[InboundEnvelope]], Awaitable[None]]
CredentialsHandler = Callable[[Any], Awaitable[None]]


class TransportSession(ABC):
    """
    One authenticated link to the messaging network.

    Implementations are created with the credentials loaded from the
    credential store and report everything else through the registered
    handlers. A session is single use: once it reports ``close`` it is
    discarded and a new one is created.
    """

    name: str = "transport"

    def __init__(self, credentials: Any = None):
        self.credentials = credentials
        self._connection_handler: Optional[ConnectionHandler] = None
        self._messages_handler: Optional[MessagesHandler] = None
        self._credentials_handler: Optional[CredentialsHandler] = None

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection. Raising counts as a failed attempt."""

    @abstractmethod
    async def send_text(self, address: str, text: str) -> Receipt:
        """Send a plain text message. Not safe for concurrent use."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection without reporting a close update."""

    def on_connection_update(self, handler: ConnectionHandler) -> None:
        self._connection_handler = handler

    def on_messages(self, handler: MessagesHandler) -> None:
        self._messages_handler = handler

    def on_credentials_update(self, handler: CredentialsHandler) -> None:
        self._credentials_handler = handler

    async def _emit_connection_update(self, update: ConnectionUpdate) -> None:
        if self._connection_handler:
            await self._connection_handler(update)

    async def _emit_messages(self, messages: list[InboundEnvelope]) -> None:
        if self._messages_handler:
            await self._messages_handler(messages)

    async def _emit_credentials_update(self, credentials: Any) -> None:
        self.credentials = credentials
        if self._credentials_handler:
            await self._credentials_handler(credentials)


SessionFactory = Callable[[Any], TransportSession]
