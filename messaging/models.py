"""Platform-agnostic message models."""

from dataclasses import dataclass
import time
from typing import Any, Optional

from transport.base import InboundEnvelope


@dataclass(frozen=True)
class InboundMessage:
    """Simplified inbound message as forwarded to observers and the webhook."""

    id: str
    remote_jid: str
    from_me: bool
    timestamp: int
    message: dict[str, Any]

    @classmethod
    def from_envelope(cls, envelope: InboundEnvelope) -> Optional["InboundMessage"]:
        """Return None for envelopes without a payload (receipts, stubs)."""
        if not envelope.message:
            return None
        return cls(
            id=envelope.id,
            remote_jid=envelope.remote_jid,
            from_me=bool(envelope.from_me),
            timestamp=envelope.timestamp or int(time.time() * 1000),
            message=envelope.message,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "remoteJid": self.remote_jid,
            "fromMe": self.from_me,
            "timestamp": self.timestamp,
            "message": self.message,
        }
