"""
Loopback Transport

In-process TransportSession that never touches the network. Sends are
recorded and acknowledged; inbound traffic and disconnects can be injected.
Useful for local runs of the gateway and for tests.
"""

from typing import Any, Optional
import uuid

from loguru import logger

from .base import ConnectionUpdate, InboundEnvelope, Receipt, TransportSession


class LoopbackSession(TransportSession):
    """Session that opens immediately and records every outbound text."""

    name = "loopback"

    def __init__(self, credentials: Any = None):
        super().__init__(credentials)
        self.sent: list[tuple[str, str]] = []
        self.connected = False

    async def connect(self) -> None:
        if self.credentials is None:
            await self._emit_credentials_update({"id": uuid.uuid4().hex})
        self.connected = True
        await self._emit_connection_update(ConnectionUpdate(connection="open"))

    async def send_text(self, address: str, text: str) -> Receipt:
        if not self.connected:
            raise ConnectionError("loopback session is not connected")
        self.sent.append((address, text))
        logger.debug(f"loopback send to {address}: {len(text)} chars")
        return Receipt(message_id=uuid.uuid4().hex[:16].upper(), address=address)

    async def close(self) -> None:
        self.connected = False

    async def inject_message(
        self, remote_jid: str, text: str, from_me: bool = False
    ) -> InboundEnvelope:
        """Deliver a text message as if it arrived from the network."""
        envelope = InboundEnvelope(
            id=uuid.uuid4().hex[:16].upper(),
            remote_jid=remote_jid,
            from_me=from_me,
            message={"conversation": text},
        )
        await self._emit_messages([envelope])
        return envelope

    async def drop(
        self, status_code: Optional[int] = None, reason: Optional[str] = None
    ) -> None:
        """Simulate the network closing the connection."""
        self.connected = False
        await self._emit_connection_update(
            ConnectionUpdate(connection="close", status_code=status_code, reason=reason)
        )
