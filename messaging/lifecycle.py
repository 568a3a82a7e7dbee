"""Connection Lifecycle Manager.

Owns the single transport session. Driven entirely by transport events:

    starting --open--> open
    starting|open --recoverable close--> closed(reason) --> reconnecting
    reconnecting --backoff elapsed--> starting
    any --logged out--> closed(terminal)

Reconnects are scheduled as fresh tasks rather than chained calls, and
events from a replaced session are ignored.
"""

import asyncio
import contextlib
import io
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import qrcode
from loguru import logger

from transport.base import (
    ConnectionUpdate,
    InboundEnvelope,
    SessionFactory,
    TransportSession,
    is_terminal_close,
)
from transport.credentials import CredentialStore

from .bus import EventBus
from .events import MessageEvent, QrEvent, StatusEvent
from .models import InboundMessage
from .webhook import WebhookNotifier

# Lower bound for any reconnect delay, whatever the configuration says
MIN_BACKOFF_S = 0.05


class ConnectionState(Enum):
    """Observable connection state; only transport events change it."""

    IDLE = "idle"  # start() not called yet
    STARTING = "starting"
    OPEN = "open"
    CLOSED = "closed"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState
    reason: Optional[str] = None
    terminal: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "reason": self.reason,
            "terminal": self.terminal,
        }


StateListener = Callable[[ConnectionStatus], None]


def render_qr(data: str) -> str:
    """Render a pairing challenge as terminal-friendly ASCII art."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(data)
    qr.make(fit=True)
    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()


class ConnectionManager:
    """Keeps one transport session alive, reconnecting with capped backoff."""

    def __init__(
        self,
        session_factory: SessionFactory,
        credential_store: CredentialStore,
        bus: EventBus,
        webhook: Optional[WebhookNotifier] = None,
        backoff_s: float = 2.0,
        max_backoff_s: float = 30.0,
        connect_timeout: float = 30.0,
    ):
        self._session_factory = session_factory
        self._credential_store = credential_store
        self._bus = bus
        self._webhook = webhook
        self.backoff_s = max(backoff_s, MIN_BACKOFF_S)
        self.max_backoff_s = max(max_backoff_s, self.backoff_s)
        self.connect_timeout = connect_timeout

        self._session: Optional[TransportSession] = None
        self._credentials: Any = None
        self._status = ConnectionStatus(ConnectionState.IDLE)
        self._attempt = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._listeners: list[StateListener] = []
        self._stopped = False

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def state(self) -> ConnectionState:
        return self._status.state

    def current_session(self) -> Optional[TransportSession]:
        """The live session, or None unless the connection is open."""
        if self._status.state != ConnectionState.OPEN:
            return None
        return self._session

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        """Load credentials once and create the first session."""
        if self._status.state != ConnectionState.IDLE:
            raise RuntimeError(f"ConnectionManager already started ({self.state.value})")
        try:
            self._credentials = await self._credential_store.load()
        except Exception as e:
            logger.error(f"Failed to load credentials: {type(e).__name__}: {e}")
            self._set_status(
                ConnectionStatus(
                    ConnectionState.CLOSED, "credentials unavailable", terminal=True
                )
            )
            raise
        await self._create_session()

    async def stop(self) -> None:
        """Cancel any pending reconnect and close the session. No further retries."""
        self._stopped = True
        task, self._reconnect_task = self._reconnect_task, None
        if task and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        session, self._session = self._session, None
        if session is not None:
            await self._close_session(session)
        self._set_status(ConnectionStatus(ConnectionState.CLOSED, "stopped", terminal=True))
        logger.info("Connection manager stopped")

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _set_status(self, status: ConnectionStatus) -> None:
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.warning(f"State listener failed: {e}")

    def _is_terminal(self) -> bool:
        return self._status.terminal

    async def _create_session(self) -> None:
        if self._stopped or self._is_terminal():
            return

        self._set_status(ConnectionStatus(ConnectionState.STARTING))
        try:
            session = self._session_factory(self._credentials)
        except Exception as e:
            logger.error(f"Failed to create transport session: {e}")
            await self._handle_close(None, ConnectionUpdate(connection="close", reason=repr(e)))
            return

        self._session = session
        session.on_connection_update(
            lambda update: self._on_connection_update(session, update)
        )
        session.on_messages(lambda messages: self._on_messages(session, messages))
        session.on_credentials_update(self._on_credentials_update)

        logger.info(f"Connecting {session.name} session (attempt {self._attempt + 1})")
        try:
            await asyncio.wait_for(session.connect(), timeout=self.connect_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            reason = "connect timed out" if isinstance(e, TimeoutError) else repr(e)
            logger.warning(f"Session connect failed: {reason}")
            await self._handle_close(
                session, ConnectionUpdate(connection="close", reason=reason)
            )
            # A half-open session is never reused
            await self._close_session(session)

    async def _close_session(self, session: TransportSession) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning(f"Error closing transport session: {e}")

    async def _on_connection_update(
        self, session: TransportSession, update: ConnectionUpdate
    ) -> None:
        if session is not self._session:
            logger.debug("Ignoring update from a replaced session")
            return

        if update.qr:
            logger.info("\n" + render_qr(update.qr))
            logger.info(
                "QR code printed to logs. Scan with WhatsApp -> Linked Devices -> Link a device."
            )
            self._bus.publish(QrEvent())

        if update.connection == "open":
            if self._status.state == ConnectionState.STARTING:
                self._attempt = 0
                self._set_status(ConnectionStatus(ConnectionState.OPEN))
                logger.info("Connection open")
                self._bus.publish(StatusEvent(connection="open"))
        elif update.connection == "close":
            await self._handle_close(session, update)

    async def _handle_close(
        self, session: Optional[TransportSession], update: ConnectionUpdate
    ) -> None:
        if session is not self._session:
            return
        if self._status.state in (ConnectionState.CLOSED, ConnectionState.RECONNECTING):
            return

        reason = update.close_reason
        self._session = None
        self._bus.publish(StatusEvent(connection="closed", reason=reason))

        if is_terminal_close(update):
            logger.error(
                f"Connection closed: {reason} (logged out). Re-pairing required; "
                "not reconnecting"
            )
            self._set_status(ConnectionStatus(ConnectionState.CLOSED, reason, terminal=True))
            return

        self._set_status(ConnectionStatus(ConnectionState.CLOSED, reason))
        if self._stopped:
            return

        delay = self._next_backoff()
        logger.warning(f"Connection closed: {reason}. Reconnecting in {delay:.2f}s")
        self._set_status(ConnectionStatus(ConnectionState.RECONNECTING, reason))
        self._reconnect_task = asyncio.create_task(self._reconnect_after(delay))

    def _next_backoff(self) -> float:
        delay = min(self.backoff_s * (2**self._attempt), self.max_backoff_s)
        self._attempt += 1
        return max(delay, MIN_BACKOFF_S)

    async def _reconnect_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        if self._reconnect_task is asyncio.current_task():
            self._reconnect_task = None
        await self._create_session()

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    async def _on_credentials_update(self, credentials: Any) -> None:
        self._credentials = credentials
        try:
            await self._credential_store.save(credentials)
        except Exception as e:
            logger.error(f"Failed to persist credentials: {e}")

    async def _on_messages(
        self, session: TransportSession, envelopes: list[InboundEnvelope]
    ) -> None:
        if session is not self._session:
            return
        for envelope in envelopes:
            message = InboundMessage.from_envelope(envelope)
            if message is None:
                continue
            data = message.to_dict()
            logger.info(f"Incoming message {message.id} from {message.remote_jid}")
            self._bus.publish(MessageEvent(data=message))
            if self._webhook:
                self._webhook.notify("message", data)
