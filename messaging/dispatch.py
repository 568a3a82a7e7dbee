"""Dispatch Queue.

Serializes every outbound send (single or bulk) through one worker task so
the transport session never sees two concurrent sends. Each item is paced,
and a failing item is recorded without aborting the rest of its job.
"""

import asyncio
from collections import OrderedDict
from collections.abc import Callable, Sequence
import contextlib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
import uuid

from loguru import logger

from transport.base import Receipt, TransportSession

from .bus import EventBus
from .events import (
    BulkDoneEvent,
    BulkErrorEvent,
    BulkProgressEvent,
    BulkStartEvent,
    SendEvent,
)
from .exceptions import (
    GatewayError,
    InvalidRequestError,
    SendFailedError,
    SendTimeoutError,
    SessionNotReadyError,
)

SessionProvider = Callable[[], Optional[TransportSession]]


class JobState(Enum):
    """State of a dispatch job."""

    PENDING = "pending"  # Waiting behind earlier jobs
    IN_PROGRESS = "in_progress"  # Owned by the worker
    COMPLETED = "completed"  # Every item attempted


@dataclass(frozen=True)
class DispatchJob:
    """One send request. Immutable once enqueued."""

    target: str
    bodies: tuple[str, ...]
    delay_ms: int
    bulk: bool = False
    job_id: str = field(default_factory=lambda: f"job_{uuid.uuid4().hex[:12]}")
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total(self) -> int:
        return len(self.bodies)


@dataclass
class JobProgress:
    """Cursor over a job, advanced only by the worker."""

    job_id: str
    total: int
    next_index: int = 0
    sent: int = 0
    state: JobState = JobState.PENDING
    errors: list[tuple[int, str]] = field(default_factory=list)

    @property
    def completed(self) -> bool:
        return self.state == JobState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "total": self.total,
            "next_index": self.next_index,
            "sent": self.sent,
            "state": self.state.value,
            "completed": self.completed,
            "errors": [{"index": i, "error": msg} for i, msg in self.errors],
        }


class DispatchQueue:
    """
    Single serialized send pipeline.

    Jobs run strictly in submission order. The live session is borrowed
    from ``session_provider`` for the duration of one send and never stored.
    """

    def __init__(
        self,
        bus: EventBus,
        session_provider: SessionProvider,
        default_delay_ms: int = 10000,
        send_timeout: float = 30.0,
        history_size: int = 100,
    ):
        self._bus = bus
        self._session_provider = session_provider
        self.default_delay_ms = default_delay_ms
        self.send_timeout = send_timeout
        self._history_size = history_size
        self._queue: asyncio.Queue[
            tuple[DispatchJob, Optional[asyncio.Future[Receipt]]]
        ] = asyncio.Queue()
        self._progress: OrderedDict[str, JobProgress] = OrderedDict()
        self._worker_task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._worker_task and not self._worker_task.done():
            return
        self._worker_task = asyncio.create_task(self._worker())
        logger.info("Dispatch worker started")

    async def stop(self) -> None:
        """Stop the worker and cancel every job still waiting."""
        task, self._worker_task = self._worker_task, None
        if task and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        dropped = 0
        while not self._queue.empty():
            job, result = self._queue.get_nowait()
            self._queue.task_done()
            if result and not result.done():
                result.cancel()
            dropped += 1
        logger.info(f"Dispatch worker stopped ({dropped} queued jobs dropped)")

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    @property
    def pending_jobs(self) -> int:
        return self._queue.qsize()

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    # ------------------------------------------------------------------
    # Enqueue
    # ------------------------------------------------------------------

    def _resolve_delay(self, delay_ms: Optional[int]) -> int:
        delay = self.default_delay_ms if delay_ms is None else int(delay_ms)
        if delay < 0:
            raise InvalidRequestError(f"delayMs must be >= 0, got {delay}")
        return delay

    def enqueue_single(
        self, target: str, body: str, delay_ms: Optional[int] = None
    ) -> "asyncio.Future[Receipt]":
        """
        Queue one message. Returns at once with a future for the receipt.

        The future fails with a GatewayError subclass if the send fails.
        """
        if not target:
            raise InvalidRequestError("Missing target address")
        if not body:
            raise InvalidRequestError("Message body is empty")

        job = DispatchJob(
            target=target, bodies=(body,), delay_ms=self._resolve_delay(delay_ms)
        )
        result: asyncio.Future[Receipt] = asyncio.get_running_loop().create_future()
        self._submit(job, result)
        return result

    def enqueue_bulk(
        self, target: str, bodies: Sequence[str], delay_ms: Optional[int] = None
    ) -> DispatchJob:
        """Queue an ordered batch of messages to one target. Returns at once."""
        if not target:
            raise InvalidRequestError("Missing target address")
        bodies = tuple(bodies)
        if not bodies:
            raise InvalidRequestError("No messages to send")
        if any(not body for body in bodies):
            raise InvalidRequestError("Bulk messages must not be empty")

        job = DispatchJob(
            target=target,
            bodies=bodies,
            delay_ms=self._resolve_delay(delay_ms),
            bulk=True,
        )
        self._submit(job, None)
        return job

    def _submit(
        self, job: DispatchJob, result: Optional["asyncio.Future[Receipt]"]
    ) -> None:
        self._progress[job.job_id] = JobProgress(job_id=job.job_id, total=job.total)
        self._trim_history()
        self._queue.put_nowait((job, result))
        logger.info(
            f"Queued {job.job_id}: {job.total} message(s) to {job.target}, "
            f"delay {job.delay_ms}ms, position {self._queue.qsize()}"
        )

    def _trim_history(self) -> None:
        """Drop the oldest completed jobs beyond ``history_size``.

        Jobs that are still queued or running are never evicted, so every
        accepted job id stays resolvable until it finishes.
        """
        excess = len(self._progress) - self._history_size
        if excess <= 0:
            return
        finished = [job_id for job_id, p in self._progress.items() if p.completed]
        for job_id in finished[:excess]:
            del self._progress[job_id]

    def get_progress(self, job_id: str) -> Optional[JobProgress]:
        return self._progress.get(job_id)

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def _worker(self) -> None:
        while True:
            job, result = await self._queue.get()
            try:
                await self._run_job(job, result)
            except asyncio.CancelledError:
                if result and not result.done():
                    result.cancel()
                raise
            except Exception as e:
                logger.exception(f"Dispatch job {job.job_id} crashed: {e}")
                if result and not result.done():
                    result.set_exception(e)
            finally:
                self._queue.task_done()

    async def _run_job(
        self, job: DispatchJob, result: Optional["asyncio.Future[Receipt]"]
    ) -> None:
        progress = self._progress.get(job.job_id) or JobProgress(
            job_id=job.job_id, total=job.total
        )
        progress.state = JobState.IN_PROGRESS

        if job.bulk:
            logger.info(f"Bulk {job.job_id} started: {job.total} lines to {job.target}")
            self._bus.publish(BulkStartEvent(total=job.total, target=job.target))

        delay_s = job.delay_ms / 1000.0
        for index, body in enumerate(job.bodies):
            progress.next_index = index
            # Pacing applies before every item, the first one included
            await asyncio.sleep(delay_s)

            try:
                receipt = await self._send_one(job.target, body)
            except GatewayError as e:
                progress.errors.append((index + 1, e.message))
                logger.error(
                    f"Send {index + 1}/{job.total} of {job.job_id} failed: {e.message}"
                )
                if job.bulk:
                    self._bus.publish(BulkErrorEvent(index=index + 1, error=e.message))
                elif result and not result.done():
                    result.set_exception(e)
                continue

            progress.sent += 1
            if job.bulk:
                self._bus.publish(
                    BulkProgressEvent(index=index + 1, total=job.total, body=body)
                )
            else:
                self._bus.publish(SendEvent(target=job.target, body=body))
                if result and not result.done():
                    result.set_result(receipt)

        progress.next_index = job.total
        progress.state = JobState.COMPLETED
        if job.bulk:
            logger.info(
                f"Bulk {job.job_id} done: {progress.sent}/{job.total} sent, "
                f"{len(progress.errors)} failed"
            )
            self._bus.publish(BulkDoneEvent(total=job.total, target=job.target))

    async def _send_one(self, target: str, body: str) -> Receipt:
        session = self._session_provider()
        if session is None:
            raise SessionNotReadyError()
        try:
            return await asyncio.wait_for(
                session.send_text(target, body), timeout=self.send_timeout
            )
        except TimeoutError as e:
            raise SendTimeoutError(
                f"send timed out after {self.send_timeout:.1f}s"
            ) from e
        except Exception as e:
            raise SendFailedError(str(e) or type(e).__name__) from e
