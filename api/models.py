"""Request and response models for the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class CheckJidRequest(BaseModel):
    jid: Optional[str] = None


class CheckJidResponse(BaseModel):
    ok: bool
    normalized: Optional[str] = None


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    message: Optional[str] = None
    delay_ms: Optional[int] = Field(default=None, alias="delayMs")


class SendResponse(BaseModel):
    ok: bool = True
    result: Any = None


class BulkSendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: Optional[str] = None
    messages: list[str] = Field(default_factory=list)
    delay_ms: Optional[int] = Field(default=None, alias="delayMs")


class BulkAcceptedResponse(BaseModel):
    ok: bool = True
    uploading: bool = True
    lines: int
    job_id: str
