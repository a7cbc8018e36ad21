"""
Worker Loop.

Drives claim -> fetch -> generate -> persist cycles. Exclusion between
workers comes only from JobStore.claim_next(); the worker keeps no locks of
its own around jobs. Every per-job error becomes a ResultRecord, so one bad
job never blocks the ones after it.
"""

import os
import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from .config import WorkerConfig
from .database import JobKind
from .errors import FetchError, StoreConflict, StoreError
from .fetch import FetchedContent, fetch_content
from .logger import get_logger
from .pipeline import FetchFailed, Generated, GenerationPipeline, InvalidFormat, ModelUnavailable
from .retry import Backoff
from .store import JobOutcome, JobRecord, JobStore

logger = get_logger()

RECORD_ATTEMPTS = 3


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def to_outcome(result, fetched: Optional[FetchedContent]) -> JobOutcome:
    """Map a pipeline result to what gets persisted."""
    if isinstance(result, Generated):
        return JobOutcome.ok(result.document, result.checksum)
    if isinstance(result, FetchFailed):
        # Nothing was fetched, nothing to keep
        return JobOutcome.error(result.reason)

    raw = fetched.raw if fetched is not None else None
    checksum = fetched.checksum if fetched is not None else None
    if isinstance(result, ModelUnavailable):
        return JobOutcome.error(result.reason, raw_content=raw, checksum=checksum)
    if isinstance(result, InvalidFormat):
        message = f"invalid format after {result.attempts} attempts: {result.last_error}"
        return JobOutcome.error(message, raw_content=raw, checksum=checksum)
    raise TypeError(f"unknown pipeline result: {result!r}")


class Worker:
    """One worker process's poll loop."""

    def __init__(
        self,
        store: JobStore,
        pipeline: GenerationPipeline,
        config: Optional[WorkerConfig] = None,
        fetcher: Callable[..., FetchedContent] = fetch_content,
        worker_id: Optional[str] = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.config = config or WorkerConfig()
        self.fetcher = fetcher
        self.worker_id = worker_id or default_worker_id()
        self.last_poll = time.monotonic()

    # Single job

    def process(self, job: JobRecord) -> JobOutcome:
        """Fetch and generate for one claimed job. Never raises."""
        fetched = None
        try:
            try:
                fetched = self.fetcher(job.url, timeout=self.config.fetch_timeout)
            except FetchError as e:
                return to_outcome(FetchFailed(reason=str(e)), None)

            prior_document = None
            if job.kind is JobKind.UPDATE:
                previous = self.store.latest_success(job.url)
                if previous is not None:
                    prior_document = previous.document

            result = self.pipeline.run(fetched.normalized, job.kind, prior_document)
            return to_outcome(result, fetched)
        except Exception as e:
            logger.error("Unexpected error processing job", job_id=job.job_id, error=repr(e))
            return JobOutcome.error(
                f"unexpected error: {type(e).__name__}: {e}",
                raw_content=fetched.raw if fetched is not None else None,
                checksum=fetched.checksum if fetched is not None else None,
            )

    def handle(self, job: JobRecord) -> JobOutcome:
        """Process a claimed job and persist its outcome."""
        logger.record_claim()
        logger.info("Received job", job_id=job.job_id, kind=job.kind.value, url=job.url)
        started = time.monotonic()
        outcome = self.process(job)

        if outcome.error_message is None:
            logger.record_job_success()
            logger.info("Produced llms.txt", job_id=job.job_id, url=job.url,
                        seconds=round(time.monotonic() - started, 2))
        else:
            logger.record_job_failure(outcome.error_message.split(":", 1)[0])
            logger.error("Job failed", job_id=job.job_id, url=job.url, error=outcome.error_message)

        self._record(job, outcome)
        return outcome

    def _record(self, job: JobRecord, outcome: JobOutcome) -> bool:
        backoff = Backoff(base_delay=0.5, max_delay=5.0)
        for attempt in range(1, RECORD_ATTEMPTS + 1):
            try:
                self.store.record_result(job.job_id, outcome)
                return True
            except StoreConflict as e:
                logger.error("[SKIP] Result rejected by store", job_id=job.job_id, error=str(e))
                return False
            except StoreError as e:
                if attempt == RECORD_ATTEMPTS:
                    logger.error(
                        f"[SKIP] Failed to record result; job {job.job_id} stays running "
                        "and needs a manual requeue",
                        job_id=job.job_id, url=job.url, attempts=attempt, error=str(e),
                    )
                    return False
                delay = backoff.next_delay()
                logger.warning("Recording result failed, retrying", job_id=job.job_id,
                               attempt=attempt, delay=delay, error=str(e))
                time.sleep(delay)
        return False

    # Polling

    def run_once(self) -> bool:
        """
        Claim and handle at most one job, synchronously.

        Returns:
            True if a job was handled, False if none was eligible

        Raises:
            StoreError: If the store could not be polled
        """
        self.last_poll = time.monotonic()
        job = self.store.claim_next(self.worker_id)
        if job is None:
            return False
        self.handle(job)
        return True

    def is_alive(self) -> bool:
        """Liveness: the loop polled recently."""
        limit = 3 * self.config.poll_interval + 30.0
        return time.monotonic() - self.last_poll <= limit

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Poll until stop_event is set.

        Up to max_concurrency jobs run at once, each slot backed by its own
        claim. Idle polls sleep poll_interval; store outages back off
        exponentially and never end the loop.
        """
        stop_event = stop_event or threading.Event()
        slots = threading.BoundedSemaphore(self.config.max_concurrency)
        backoff = Backoff(base_delay=max(self.config.poll_interval, 0.1), max_delay=60.0)

        logger.info("Worker started", worker_id=self.worker_id,
                    max_concurrency=self.config.max_concurrency,
                    poll_interval=self.config.poll_interval)

        with ThreadPoolExecutor(max_workers=self.config.max_concurrency,
                                thread_name_prefix="job") as pool:
            while not stop_event.is_set():
                self.last_poll = time.monotonic()
                if not slots.acquire(timeout=max(self.config.poll_interval, 0.1)):
                    continue  # every slot busy

                try:
                    job = self.store.claim_next(self.worker_id)
                except StoreError as e:
                    slots.release()
                    delay = backoff.next_delay()
                    logger.error("Error polling job queue, backing off", error=str(e), delay=delay)
                    stop_event.wait(delay)
                    continue
                backoff.reset()

                if job is None:
                    slots.release()
                    logger.debug("Waiting to poll for next job")
                    stop_event.wait(self.config.poll_interval)
                    continue

                pool.submit(self._run_slot, job, slots)

        logger.info("Worker stopped", worker_id=self.worker_id)
        logger.log_metrics_summary()

    def _run_slot(self, job: JobRecord, slots: threading.BoundedSemaphore) -> None:
        try:
            self.handle(job)
        except Exception as e:
            logger.critical("Job slot crashed", job_id=job.job_id, error=repr(e))
        finally:
            slots.release()
