"""
Recognition Scheduler Module.

Fixed-size pool of OCR workers turning raw document bytes into text.
The scheduler is constructed once at startup and passed by reference
to every caller that needs recognition.

Scheduling:
    - Jobs are served in submission order (FIFO).
    - No priority and no cancellation: an abandoned job still occupies
      a worker until recognition finishes.
    - A per-job recognition error fails that job only.
    - A worker crash fails its job with RecognitionFailure; the worker is
      replaced or dropped according to ``replace_failed_workers``.

Usage:
    with RecognitionScheduler(pool_size=3) as scheduler:
        text = scheduler.recognize(image_bytes)
"""

import queue
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol

from config import get_config
from bill_extraction.utils.logger import get_logger
from bill_extraction.utils.exceptions import (
    OCREngineNotAvailableError,
    RecognitionError,
    RecognitionFailure,
    SchedulerShutdownError,
)

logger = get_logger(__name__)


class RecognitionBackend(Protocol):
    """Anything that turns image bytes into text."""

    def recognize(self, data: bytes) -> str:
        ...


@dataclass
class RecognitionJob:
    """A document waiting for (or undergoing) recognition."""
    data: bytes
    submitted_at: float = field(default_factory=time.time)
    future: Future = field(default_factory=Future, repr=False)


# Queue sentinel telling a worker to exit
_STOP = object()


class RecognitionWorker:
    """One OCR worker: a thread and the backend it owns."""

    def __init__(self, name: str, backend: RecognitionBackend, scheduler: "RecognitionScheduler") -> None:
        self.name = name
        self.backend = backend
        self._scheduler = scheduler
        self.thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self.thread.start()

    def _run(self) -> None:
        while True:
            job = self._scheduler._queue.get()
            if job is _STOP:
                return

            if not job.future.set_running_or_notify_cancel():
                continue

            try:
                text = self.backend.recognize(job.data)
            except RecognitionError as e:
                logger.warning(f"{self.name}: recognition failed: {e}")
                job.future.set_exception(e)
                continue
            except Exception as e:
                logger.error(f"{self.name}: worker crashed: {e}")
                self._scheduler._handle_crash(self)
                job.future.set_exception(RecognitionFailure(self.name, str(e)))
                return

            wait_time = time.time() - job.submitted_at
            logger.debug(f"{self.name}: job completed ({wait_time:.2f}s since submission)")
            job.future.set_result(text)


class RecognitionScheduler:
    """
    Bounded worker pool for OCR recognition.

    Attributes:
        pool_size: Number of workers started at construction
        replace_failed_workers: Whether a crashed worker is replenished

    Example:
        >>> scheduler = RecognitionScheduler(pool_size=2)
        >>> future = scheduler.submit(image_bytes)
        >>> text = future.result()
        >>> scheduler.shutdown()
    """

    def __init__(
        self,
        pool_size: Optional[int] = None,
        backend_factory: Optional[Callable[[], RecognitionBackend]] = None,
        replace_failed_workers: Optional[bool] = None
    ) -> None:
        """
        Start the worker pool.

        Args:
            pool_size: Number of workers. If None, uses configuration.
            backend_factory: Callable building one backend per worker.
                Defaults to TesseractBackend.
            replace_failed_workers: Crash policy. If None, uses configuration.

        Raises:
            ValueError: If pool_size is smaller than 1.
            OCREngineNotAvailableError: If a backend cannot be built.
        """
        self.pool_size = pool_size if pool_size is not None else \
            get_config("recognition.pool_size", 3)
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be at least 1, got {self.pool_size}")

        if backend_factory is None:
            from .tesseract_backend import TesseractBackend
            backend_factory = TesseractBackend
        self.backend_factory = backend_factory

        self.replace_failed_workers = replace_failed_workers if replace_failed_workers is not None else \
            get_config("recognition.replace_failed_workers", False)

        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._lock = threading.Lock()
        self._workers: List[RecognitionWorker] = []
        self._worker_count = 0
        self._shutdown = False

        # Backends are built before any thread starts so engine errors surface here
        workers = [self._create_worker() for _ in range(self.pool_size)]
        with self._lock:
            self._workers.extend(workers)
        for worker in workers:
            worker.start()

        logger.info(
            f"RecognitionScheduler started with {self.pool_size} workers "
            f"(replace_failed_workers={self.replace_failed_workers})"
        )

    def _create_worker(self) -> RecognitionWorker:
        self._worker_count += 1
        return RecognitionWorker(f"ocr-worker-{self._worker_count}", self.backend_factory(), self)

    @property
    def active_workers(self) -> int:
        with self._lock:
            return len(self._workers)

    def submit(self, data: bytes) -> Future:
        """
        Enqueue a document for recognition.

        Args:
            data: Raw document bytes.

        Returns:
            Future resolving to the recognized text.

        Raises:
            SchedulerShutdownError: If the scheduler has been shut down.
        """
        job = RecognitionJob(data=data)

        with self._lock:
            if self._shutdown:
                raise SchedulerShutdownError()

            if not self._workers:
                self._fail(job, OCREngineNotAvailableError(
                    "recognition pool", "no live workers remain"
                ))
                return job.future

            self._queue.put(job)

        return job.future

    def recognize(self, data: bytes) -> str:
        """
        Recognize a document, blocking until a worker completes it.

        Args:
            data: Raw document bytes.

        Returns:
            Recognized text.

        Raises:
            RecognitionError: If recognition fails for this document.
        """
        return self.submit(data).result()

    def _handle_crash(self, worker: RecognitionWorker) -> None:
        # Every worker listed in _workers has been started
        with self._lock:
            if worker in self._workers:
                self._workers.remove(worker)

            if self.replace_failed_workers and not self._shutdown:
                try:
                    replacement = self._create_worker()
                except Exception as e:
                    logger.error(f"Could not replace {worker.name}: {e}")
                else:
                    self._workers.append(replacement)
                    replacement.start()
                    logger.info(f"Replaced {worker.name} with {replacement.name}")
            else:
                logger.warning(
                    f"{worker.name} not replaced; pool capacity is now {len(self._workers)}"
                )

            if not self._workers:
                self._drain(OCREngineNotAvailableError(
                    "recognition pool", "all workers have failed"
                ))

    def _drain(self, error: Exception) -> None:
        """Fail every queued job. Caller holds the lock."""
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                return
            if job is not _STOP:
                self._fail(job, error)

    @staticmethod
    def _fail(job: RecognitionJob, error: Exception) -> None:
        if job.future.set_running_or_notify_cancel():
            job.future.set_exception(error)

    def shutdown(self, wait: bool = True) -> None:
        """
        Stop accepting jobs and stop the workers once the queue is drained.

        Args:
            wait: Block until every worker thread has exited.
        """
        with self._lock:
            if self._shutdown:
                workers = []
            else:
                self._shutdown = True
                workers = list(self._workers)
                for _ in workers:
                    self._queue.put(_STOP)

        if wait:
            for worker in workers:
                worker.thread.join()

        logger.info("RecognitionScheduler shut down")

    def __enter__(self) -> "RecognitionScheduler":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)
