"""
Upload queue.

Owns the task collection, enforces the concurrency cap and drives every
state transition. Follows Dependency Inversion Principle - the transport,
validator, estimator and retry strategy are all injected.
"""
import asyncio
import math
import time
from typing import Dict, Any, Optional, List, Callable, Iterable, Mapping, Union

from .models import (
    FileInfo,
    ProgressSample,
    UploadStats,
    UploadStatus,
    UploadTask,
)
from .protocols import TransportAdapter, FileValidatorProtocol, ProgressEstimatorProtocol, LoggerProtocol
from .services import FileValidator, ProgressEstimator
from ..config import UploadConfig
from ..events import EventEmitter
from ..exceptions import ConfigurationError, ErrorKind
from ..logging import get_logger
from ..retry import RetryStrategy, ExponentialBackoffStrategy


class UploadQueue:
    """
    Schedules uploads under a concurrency cap.

    All mutations happen synchronously on the event loop, so no locking
    is needed. Only transport.send() runs asynchronously; every callback
    it produces carries an attempt token and is dropped once the token is
    stale (after cancel, retry or removal).

    Events (each handler receives an UploadTask snapshot):
        added, started, progress, retrying (also delay in ms),
        processing, completed, failed, cancelled, removed

    Listener errors raised by events of a caller's own operation
    propagate to the caller. Errors raised by events emitted from a
    running transfer, a backoff timer or a scheduling pass ('started')
    are logged and never reach the transport or the retry policy.

    Example:
        >>> queue = UploadQueue(HttpTransport("https://api.example.com/client/upload"))
        >>> queue.on('completed', lambda task: print(task.file.name))
        >>> upload_id = queue.add_upload(FileInfo.from_path("manual.pdf"))
        >>> await queue.wait_idle()
    """

    def __init__(
        self,
        transport: TransportAdapter,
        config: Optional[UploadConfig] = None,
        retry_strategy: Optional[RetryStrategy] = None,
        validator: Optional[FileValidatorProtocol] = None,
        estimator: Optional[ProgressEstimatorProtocol] = None,
        clock: Callable[[], float] = time.monotonic,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        logger: Optional[LoggerProtocol] = None
    ):
        """
        Initialize upload queue.

        Args:
            transport: Component performing the byte transfer
            config: Validation policy and limits
            retry_strategy: Failure classification and backoff
            validator: Admission check
            estimator: Speed/ETA estimator
            clock: Monotonic time source in seconds
            loop: Event loop for transfers and timers (defaults to running loop)
            logger: Logger instance
        """
        self._transport = transport
        self._config = config or UploadConfig()
        self._owns_retry_strategy = retry_strategy is None
        self._retry = retry_strategy or ExponentialBackoffStrategy(self._config.retry)
        self._validator = validator or FileValidator()
        self._estimator = estimator or ProgressEstimator()
        self._clock = clock
        self._loop = loop
        self._logger = logger or get_logger('upload.queue')
        self._events = EventEmitter()

        # Insertion order is the FIFO admission order
        self._tasks: Dict[str, UploadTask] = {}
        self._history: List[UploadTask] = []
        self._transfers: Dict[str, asyncio.Task] = {}
        self._backoff_timers: Dict[str, asyncio.TimerHandle] = {}
        self._samples: Dict[str, ProgressSample] = {}
        self._attempts: Dict[str, int] = {}
        self._idle_waiters: List[asyncio.Future] = []

    @property
    def config(self) -> UploadConfig:
        """Returns the active configuration."""
        return self._config

    # Events

    def on(self, event: str, callback: Callable) -> 'UploadQueue':
        """Subscribe to a queue event."""
        self._events.on(event, callback)
        return self

    def off(self, event: str, callback: Optional[Callable] = None) -> 'UploadQueue':
        """Unsubscribe from a queue event."""
        self._events.off(event, callback)
        return self

    # Public control surface

    def add_upload(
        self,
        file: Optional[FileInfo],
        max_retries: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Validate a file and append it to the queue.

        Returns immediately with the new task id; rejected files are
        recorded as failed tasks instead of raising.

        Args:
            file: File to upload
            max_retries: Override of the configured retry budget
            metadata: Free-form caller data stored on the task

        Returns:
            Task id

        Raises:
            ConfigurationError: If max_retries is negative
        """
        if max_retries is None:
            max_retries = self._config.max_retries
        elif max_retries < 0:
            raise ConfigurationError(f"max_retries must not be negative, got {max_retries}")

        verdict = self._validator.validate(file, list(self._tasks.values()), self._config)

        task = UploadTask(
            file=file if file is not None else FileInfo(name='', size=0),
            max_retries=max_retries,
            metadata=dict(metadata or {})
        )
        while task.id in self._tasks:
            task = UploadTask(file=task.file, max_retries=max_retries, metadata=task.metadata)

        if not verdict.is_valid:
            task.record_error(verdict.error, ErrorKind.VALIDATION)
            task.transition(UploadStatus.FAILED)
            self._tasks[task.id] = task
            self._logger.warning(f"Rejected {task.file.name or '<no file>'}: {verdict.error}")
            self._emit('added', task)
            self._emit('failed', task)
            return task.id

        task.transition(UploadStatus.QUEUED)
        self._tasks[task.id] = task
        self._logger.info(f"Queued {task.file.name} ({task.file.size} bytes) as {task.id}")
        self._emit('added', task)

        self._process_queue()
        return task.id

    def add_multiple_uploads(self, files: Iterable[Optional[FileInfo]]) -> List[str]:
        """Add several files in order, returning their task ids."""
        return [self.add_upload(file) for file in files]

    def cancel_upload(self, upload_id: str) -> bool:
        """
        Cancel a queued or uploading task.

        Idempotent: cancelling a task that is already terminal (or
        processing on the backend) changes nothing.

        Returns:
            True if the task was cancelled by this call
        """
        task = self._tasks.get(upload_id)
        cancelled = False

        if task is not None and task.status in (UploadStatus.QUEUED, UploadStatus.UPLOADING):
            was_uploading = task.is_active
            self._cancel_timer(upload_id)
            self._abort_transfer(upload_id)
            task.transition(UploadStatus.CANCELLED)
            task.speed = None
            task.time_remaining = None
            self._logger.info(
                f"Cancelled {task.file.name} ({upload_id})"
                + (" during transfer" if was_uploading else "")
            )
            self._emit('cancelled', task)
            cancelled = True

        self._process_queue()
        self._notify_idle()
        return cancelled

    def remove_upload(self, upload_id: str) -> bool:
        """
        Cancel a task if needed and delete it.

        Returns:
            True if the task existed
        """
        task = self._tasks.get(upload_id)
        if task is None:
            return False

        if not task.is_terminal:
            self.cancel_upload(upload_id)

        self._discard(upload_id)
        self._process_queue()
        self._notify_idle()
        return True

    def retry_upload(self, upload_id: str) -> bool:
        """
        Re-queue a task manually.

        Skips the pending backoff of a task waiting to be retried, or puts
        a failed task back in the queue while its retry budget lasts.
        Validation failures cannot be retried.

        Returns:
            True if the task was re-queued
        """
        task = self._tasks.get(upload_id)
        if task is None:
            return False

        if task.status == UploadStatus.QUEUED and upload_id in self._backoff_timers:
            # retry_count was already charged when the backoff was scheduled
            self._cancel_timer(upload_id)
        elif (
            task.status == UploadStatus.FAILED
            and task.error_kind != ErrorKind.VALIDATION
            and task.can_retry
        ):
            task.retry_count += 1
            task.progress = 0
            task.transition(UploadStatus.QUEUED)
        else:
            self._logger.debug(f"Retry of {upload_id} ignored (status={task.status.value}, "
                               f"retries={task.retry_count}/{task.max_retries})")
            return False

        self._logger.info(f"Manual retry of {task.file.name} ({upload_id}), "
                          f"attempt {task.retry_count}/{task.max_retries}")
        self._emit('retrying', task, 0.0)
        self._process_queue()
        self._notify_idle()
        return True

    def retry_all(self) -> List[str]:
        """Retry every failed task that still has budget; returns their ids."""
        failed = [task.id for task in self._tasks.values() if task.status == UploadStatus.FAILED]
        return [upload_id for upload_id in failed if self.retry_upload(upload_id)]

    def clear_completed(self) -> int:
        """
        Delete every terminal task.

        Returns:
            Number of removed tasks
        """
        terminal = [task.id for task in self._tasks.values() if task.is_terminal]
        for upload_id in terminal:
            self._discard(upload_id)
        return len(terminal)

    def clear_all(self) -> None:
        """Cancel all unfinished tasks and empty the queue."""
        for upload_id in list(self._tasks):
            task = self._tasks[upload_id]
            if task.status in (UploadStatus.QUEUED, UploadStatus.UPLOADING):
                self._cancel_timer(upload_id)
                self._abort_transfer(upload_id)
                task.transition(UploadStatus.CANCELLED)
                self._emit('cancelled', task)
            self._discard(upload_id)
        self._notify_idle()

    def update_settings(self, **changes: Any) -> UploadConfig:
        """
        Replace configuration values.

        Raising max_concurrent_uploads admits waiting tasks right away.
        Existing tasks keep their retry budget.

        Raises:
            ConfigurationError: If a setting is unknown or invalid
        """
        self._config = self._config.update(**changes)
        if self._owns_retry_strategy:
            self._retry = ExponentialBackoffStrategy(self._config.retry)
        self._logger.info(f"Settings updated: {', '.join(sorted(changes))}")
        self._process_queue()
        return self._config

    def on_backend_status_update(
        self,
        upload_id: str,
        status: str,
        progress: Optional[float] = None
    ) -> bool:
        """
        Reconcile a processing task with the backend pipeline.

        Args:
            upload_id: Task id
            status: Backend status ('completed', 'failed' or in-progress value)
            progress: Optional backend progress percent

        Returns:
            True if the update was applied
        """
        task = self._tasks.get(upload_id)
        if task is None or task.status != UploadStatus.PROCESSING:
            self._logger.debug(f"Ignoring backend status {status!r} for {upload_id}")
            return False

        status = str(status).lower()
        if progress is not None:
            task.progress = max(task.progress, _clamp_percent(progress))

        if status == UploadStatus.COMPLETED.value:
            task.progress = 100
            task.clear_error()
            task.transition(UploadStatus.COMPLETED)
            self._logger.info(f"Backend finished processing {task.file.name} ({upload_id})")
            self._emit('completed', task)
        elif status == UploadStatus.FAILED.value:
            task.record_error("Processing failed", ErrorKind.BACKEND)
            task.transition(UploadStatus.FAILED)
            self._logger.error(f"Backend failed to process {task.file.name} ({upload_id})")
            self._emit('failed', task)
        else:
            self._emit('progress', task)
        return True

    # Queries

    def get_upload_by_id(self, upload_id: str) -> Optional[UploadTask]:
        """Returns a snapshot of the task, or None."""
        task = self._tasks.get(upload_id)
        return task.snapshot() if task else None

    def get_uploads(self) -> List[UploadTask]:
        """Returns snapshots of all tasks in insertion order."""
        return [task.snapshot() for task in self._tasks.values()]

    def get_uploads_by_status(self, status: Union[UploadStatus, str]) -> List[UploadTask]:
        """Returns snapshots of the tasks in the given status."""
        status = UploadStatus(status)
        return [task.snapshot() for task in self._tasks.values() if task.status == status]

    def get_total_progress(self) -> int:
        """Returns the rounded mean progress of all tasks (0 when empty)."""
        if not self._tasks:
            return 0
        total = sum(task.progress for task in self._tasks.values())
        return int(math.floor(total / len(self._tasks) + 0.5))

    def get_upload_stats(self) -> UploadStats:
        """Returns counts per status and the summed byte size."""
        counts = {status: 0 for status in UploadStatus}
        for task in self._tasks.values():
            counts[task.status] += 1

        return UploadStats(
            total=len(self._tasks),
            queued=counts[UploadStatus.QUEUED],
            uploading=counts[UploadStatus.UPLOADING],
            processing=counts[UploadStatus.PROCESSING],
            completed=counts[UploadStatus.COMPLETED],
            failed=counts[UploadStatus.FAILED],
            cancelled=counts[UploadStatus.CANCELLED],
            total_size=sum(task.file.size for task in self._tasks.values()),
            historical_total=len(self._history)
        )

    def get_upload_history(self) -> List[UploadTask]:
        """Returns snapshots of tasks taken when their transfer succeeded."""
        return [task.snapshot() for task in self._history]

    async def wait_idle(self) -> None:
        """Wait until no transfer is running and no retry is pending."""
        while self._transfers or self._backoff_timers:
            waiter = asyncio.get_running_loop().create_future()
            self._idle_waiters.append(waiter)
            await waiter

    # Scheduling

    def _process_queue(self) -> None:
        """
        Admit queued tasks into free slots, oldest first.

        Slots and the next candidate are recomputed for every admission,
        so a listener that re-enters the queue from 'started' (and runs a
        nested pass) never causes a task to be started twice or the cap
        to be exceeded.
        """
        while True:
            active = sum(1 for task in self._tasks.values() if task.is_active)
            if active >= self._config.max_concurrent_uploads:
                return

            task = next(
                (
                    task for task in self._tasks.values()
                    if task.status == UploadStatus.QUEUED and task.id not in self._backoff_timers
                ),
                None
            )
            if task is None:
                return

            self._start(task, self._get_loop())

    def _start(self, task: UploadTask, loop: asyncio.AbstractEventLoop) -> None:
        attempt = self._attempts.get(task.id, 0) + 1
        self._attempts[task.id] = attempt

        task.transition(UploadStatus.UPLOADING)
        task.progress = 0
        task.speed = None
        task.time_remaining = None
        self._samples[task.id] = ProgressSample(percent=0.0, timestamp=self._clock())

        self._logger.debug(f"Starting {task.file.name} ({task.id}), attempt {attempt}")
        self._transfers[task.id] = loop.create_task(self._run_transfer(task.id, attempt, task.file))
        self._emit_safely('started', task)

    async def _run_transfer(self, upload_id: str, attempt: int, file: FileInfo) -> None:
        """Run one transport attempt and fold its outcome into the task."""
        def on_progress(percent: float) -> None:
            self._handle_progress(upload_id, attempt, percent)

        try:
            result = await self._transport.send(file, on_progress)
        except asyncio.CancelledError:
            self._logger.debug(f"Transfer of {upload_id} aborted")
            raise
        except Exception as e:
            self._handle_failure(upload_id, attempt, e)
        else:
            self._handle_success(upload_id, attempt, result)
        finally:
            if self._transfers.get(upload_id) is asyncio.current_task():
                del self._transfers[upload_id]
            self._notify_idle()

    def _is_current(self, upload_id: str, attempt: int) -> bool:
        """True if callbacks from this attempt may still touch the task."""
        task = self._tasks.get(upload_id)
        return (
            task is not None
            and task.status == UploadStatus.UPLOADING
            and self._attempts.get(upload_id) == attempt
        )

    def _handle_progress(self, upload_id: str, attempt: int, percent: float) -> None:
        if not self._is_current(upload_id, attempt):
            self._logger.debug(f"Dropping late progress for {upload_id}")
            return

        task = self._tasks[upload_id]
        estimate = self._estimator.estimate(
            self._samples[upload_id], float(percent), self._clock(), task.file.size
        )
        self._samples[upload_id] = estimate.sample
        task.progress = estimate.progress
        task.speed = estimate.speed
        task.time_remaining = estimate.time_remaining
        self._emit_safely('progress', task)

    def _handle_success(self, upload_id: str, attempt: int, result: Optional[Mapping[str, Any]]) -> None:
        if not self._is_current(upload_id, attempt):
            self._logger.debug(f"Dropping late completion for {upload_id}")
            return

        task = self._tasks[upload_id]
        result = result or {}
        status, backend_progress, backend_id = _read_backend_status(result)
        task.result = result
        task.backend_id = backend_id
        task.time_remaining = None

        if status == UploadStatus.COMPLETED.value:
            task.progress = 100
            task.clear_error()
            task.transition(UploadStatus.COMPLETED)
            self._logger.info(f"Uploaded {task.file.name} ({upload_id})")
            event = 'completed'
        elif status == UploadStatus.FAILED.value:
            message = result.get('message') or result.get('error') or "Processing failed"
            task.record_error(str(message), ErrorKind.BACKEND)
            task.transition(UploadStatus.FAILED)
            self._logger.error(f"Backend rejected {task.file.name} ({upload_id}): {message}")
            event = 'failed'
        else:
            task.progress = 100 if backend_progress is None else _clamp_percent(backend_progress)
            task.clear_error()
            task.transition(UploadStatus.PROCESSING)
            self._logger.info(f"Uploaded {task.file.name} ({upload_id}), backend status {status!r}")
            event = 'processing'

        if task.status != UploadStatus.FAILED:
            self._history.append(task.snapshot())
        self._emit_safely(event, task)
        self._process_queue()

    def _handle_failure(self, upload_id: str, attempt: int, error: Exception) -> None:
        if not self._is_current(upload_id, attempt):
            self._logger.debug(f"Dropping late failure for {upload_id}: {error}")
            return

        task = self._tasks[upload_id]
        decision = self._retry.classify(error)
        task.record_error(decision.message, decision.kind)
        task.speed = None
        task.time_remaining = None

        if self._retry.should_retry(decision, task.retry_count, task.max_retries):
            delay_ms = self._retry.compute_backoff(task.retry_count)
            task.retry_count += 1
            task.transition(UploadStatus.QUEUED)
            self._schedule_retry(upload_id, delay_ms)
            self._logger.warning(
                f"Upload of {task.file.name} failed ({decision.message}), "
                f"retry {task.retry_count}/{task.max_retries} in {delay_ms:.0f} ms"
            )
            self._emit_safely('retrying', task, delay_ms)
        else:
            task.transition(UploadStatus.FAILED)
            self._logger.error(f"Upload of {task.file.name} failed: {decision.message}")
            self._emit_safely('failed', task)

        self._process_queue()

    def _schedule_retry(self, upload_id: str, delay_ms: float) -> None:
        handle = self._get_loop().call_later(delay_ms / 1000, self._on_backoff_elapsed, upload_id)
        self._backoff_timers[upload_id] = handle

    def _on_backoff_elapsed(self, upload_id: str) -> None:
        self._backoff_timers.pop(upload_id, None)
        self._process_queue()
        self._notify_idle()

    def _cancel_timer(self, upload_id: str) -> None:
        handle = self._backoff_timers.pop(upload_id, None)
        if handle is not None:
            handle.cancel()

    def _abort_transfer(self, upload_id: str) -> None:
        # Invalidate the running attempt before cancelling it
        self._attempts[upload_id] = self._attempts.get(upload_id, 0) + 1
        transfer = self._transfers.pop(upload_id, None)
        if transfer is not None and not transfer.done():
            transfer.cancel()

    def _discard(self, upload_id: str) -> None:
        task = self._tasks.pop(upload_id, None)
        self._cancel_timer(upload_id)
        self._samples.pop(upload_id, None)
        self._attempts.pop(upload_id, None)
        if task is not None:
            self._emit('removed', task)

    def _notify_idle(self) -> None:
        if self._transfers or self._backoff_timers:
            return
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def _emit(self, event: str, task: UploadTask, *args: Any) -> None:
        self._events.emit(event, task.snapshot(), *args)

    def _emit_safely(self, event: str, task: UploadTask, *args: Any) -> None:
        """Emit from scheduler and transfer code; listener errors are logged, not raised."""
        snapshot = task.snapshot()
        for callback in self._events.listeners(event):
            try:
                callback(snapshot, *args)
            except Exception:
                self._logger.exception(f"Listener for {event!r} failed on {task.id}")


def _clamp_percent(value: float) -> int:
    return int(round(min(max(float(value), 0.0), 100.0)))


def _read_backend_status(result: Mapping[str, Any]):
    """Extract (status, progress, id) from a backend response."""
    body = result.get('pdf') if isinstance(result.get('pdf'), Mapping) else result
    status = str(body.get('status') or UploadStatus.PROCESSING.value).lower()
    backend_id = body.get('id', result.get('id'))
    return status, body.get('progress'), None if backend_id is None else str(backend_id)
