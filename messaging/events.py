"""Broadcast event types.

Every event is an immutable dataclass with a ``type`` tag and a ``to_dict``
producing the JSON shape sent to observers.
"""

from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Optional, Union

from .models import InboundMessage


@dataclass(frozen=True)
class QrEvent:
    type: ClassVar[str] = "qr"
    message: str = "QR generated - check logs"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}


@dataclass(frozen=True)
class StatusEvent:
    type: ClassVar[str] = "status"
    connection: Literal["open", "closed"]
    reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.type, "connection": self.connection}
        if self.reason is not None:
            data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class MessageEvent:
    type: ClassVar[str] = "message"
    data: InboundMessage

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.data.to_dict()}


@dataclass(frozen=True)
class SendEvent:
    type: ClassVar[str] = "send"
    target: str
    body: str
    status: str = "sent"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "to": self.target,
            "message": self.body,
            "status": self.status,
        }


@dataclass(frozen=True)
class BulkStartEvent:
    type: ClassVar[str] = "bulkStart"
    total: int
    target: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "total": self.total, "to": self.target}


@dataclass(frozen=True)
class BulkProgressEvent:
    type: ClassVar[str] = "bulkProgress"
    index: int
    total: int
    body: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "index": self.index,
            "total": self.total,
            "line": self.body,
        }


@dataclass(frozen=True)
class BulkErrorEvent:
    type: ClassVar[str] = "bulkError"
    index: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "index": self.index, "error": self.error}


@dataclass(frozen=True)
class BulkDoneEvent:
    type: ClassVar[str] = "bulkDone"
    total: int
    target: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "total": self.total, "to": self.target}


BroadcastEvent = Union[
    QrEvent,
    StatusEvent,
    MessageEvent,
    SendEvent,
    BulkStartEvent,
    BulkProgressEvent,
    BulkErrorEvent,
    BulkDoneEvent,
]
