"""FastAPI route handlers."""

import dataclasses
import re
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from loguru import logger

from config.settings import Settings
from messaging.address import normalize_address
from messaging.bus import EventBus
from messaging.dispatch import DispatchQueue
from messaging.exceptions import InvalidRequestError, SessionNotReadyError
from messaging.lifecycle import ConnectionManager

from .dependencies import (
    get_connection,
    get_dispatch_queue,
    get_event_bus,
    get_settings,
)
from .models import (
    BulkAcceptedResponse,
    BulkSendRequest,
    CheckJidRequest,
    CheckJidResponse,
    SendRequest,
    SendResponse,
)
from .sse import SSE_HEADERS, event_stream

router = APIRouter()

_LINE_SPLIT = re.compile(r"\r?\n")


def _resolve_target(raw: Optional[str], settings: Settings) -> str:
    check = normalize_address(raw, settings.default_domain)
    if not check.ok or check.normalized is None:
        raise InvalidRequestError(f"Invalid recipient: {raw!r}")
    return check.normalized


def split_lines(text: str) -> list[str]:
    """Non-empty, trimmed lines of an uploaded text file."""
    lines = (line.strip() for line in _LINE_SPLIT.split(text))
    return [line for line in lines if line]


# =============================================================================
# Routes
# =============================================================================


@router.post("/check-jid", response_model=CheckJidResponse)
async def check_jid(
    body: Optional[CheckJidRequest] = None,
    jid: Optional[str] = None,
    settings: Settings = Depends(get_settings),
):
    """Validate and normalize a recipient identifier."""
    text = (body.jid if body and body.jid else None) or jid or ""
    check = normalize_address(text, settings.default_domain)
    return CheckJidResponse(ok=check.ok, normalized=check.normalized)


@router.post("/send", response_model=SendResponse)
async def send(
    request_data: SendRequest,
    settings: Settings = Depends(get_settings),
    queue: DispatchQueue = Depends(get_dispatch_queue),
    connection: Optional[ConnectionManager] = Depends(get_connection),
):
    """Send one message after the pacing delay and return its receipt."""
    if not request_data.to or not request_data.message:
        raise InvalidRequestError("Missing to or message")
    target = _resolve_target(request_data.to, settings)
    if connection is None or connection.current_session() is None:
        raise SessionNotReadyError()

    result = queue.enqueue_single(target, request_data.message, request_data.delay_ms)
    receipt = await result
    logger.info(f"SEND: to={target} chars={len(request_data.message)}")
    if dataclasses.is_dataclass(receipt):
        receipt = dataclasses.asdict(receipt)
    return SendResponse(ok=True, result=receipt)


@router.post("/upload-lines", response_model=BulkAcceptedResponse)
async def upload_lines(
    file: Optional[UploadFile] = File(None),
    to: Optional[str] = Form(None),
    delay_ms: Optional[int] = Form(None, alias="delayMs"),
    settings: Settings = Depends(get_settings),
    queue: DispatchQueue = Depends(get_dispatch_queue),
):
    """Send every non-empty line of an uploaded text file, one per pacing interval."""
    if file is None:
        raise InvalidRequestError("No file uploaded")
    if not to:
        raise InvalidRequestError("Missing `to` field")
    target = _resolve_target(to, settings)

    raw = await file.read()
    lines = split_lines(raw.decode("utf-8", errors="replace"))
    if not lines:
        raise InvalidRequestError("No non-empty lines found in file")

    job = queue.enqueue_bulk(target, lines, delay_ms)
    logger.info(f"UPLOAD_LINES: file={file.filename!r} lines={len(lines)} job={job.job_id}")
    return BulkAcceptedResponse(lines=job.total, job_id=job.job_id)


@router.post("/send-bulk", response_model=BulkAcceptedResponse)
async def send_bulk(
    request_data: BulkSendRequest,
    settings: Settings = Depends(get_settings),
    queue: DispatchQueue = Depends(get_dispatch_queue),
):
    """JSON variant of /upload-lines."""
    if not request_data.to:
        raise InvalidRequestError("Missing `to` field")
    target = _resolve_target(request_data.to, settings)
    messages = [m.strip() for m in request_data.messages if m and m.strip()]

    job = queue.enqueue_bulk(target, messages, request_data.delay_ms)
    return BulkAcceptedResponse(lines=job.total, job_id=job.job_id)


@router.get("/events")
async def events(
    bus: EventBus = Depends(get_event_bus),
    settings: Settings = Depends(get_settings),
):
    """Live stream of gateway events (SSE)."""
    return StreamingResponse(
        event_stream(bus, settings.sse_retry_ms, settings.sse_keepalive),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/status")
async def status(
    connection: Optional[ConnectionManager] = Depends(get_connection),
    queue: DispatchQueue = Depends(get_dispatch_queue),
    bus: EventBus = Depends(get_event_bus),
):
    """Connection state plus queue and observer counts."""
    if connection is None:
        data = {"state": "closed", "reason": "no transport configured", "terminal": True}
    else:
        data = connection.status.to_dict()
    data["pending_jobs"] = queue.pending_jobs
    data["observers"] = bus.observer_count
    return data


@router.get("/jobs/{job_id}")
async def job_progress(job_id: str, queue: DispatchQueue = Depends(get_dispatch_queue)):
    """Progress of a recently submitted job."""
    progress = queue.get_progress(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"Unknown job {job_id}")
    return progress.to_dict()


@router.get("/")
async def root(connection: Optional[ConnectionManager] = Depends(get_connection)):
    """Root endpoint."""
    state = connection.state.value if connection else "closed"
    return {"status": "ok", "connection": state}


@router.get("/health")
async def health():
    """Health check endpoint."""
    return {"ok": True}
