"""
Job Store.

The sole source of truth and synchronization point for job state. Workers
coordinate only through claim_next() and record_result(); no other
cross-worker coordination exists.

Claim priority: STARTED jobs before QUEUED jobs, strict FIFO by created_at
within a state, job_id as a stable tie-break.
"""

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from sqlalchemy import case, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import (
    Base,
    CLAIMABLE,
    IN_PROGRESS,
    Job,
    JobKind,
    JobStatus,
    Outcome,
    Result,
    can_transition,
    make_engine,
)
from .errors import InvalidUrl, StoreConflict, StoreError
from .logger import get_logger
from .normalize import is_valid_url

logger = get_logger()


@dataclass(frozen=True)
class JobRecord:
    job_id: str
    url: str
    kind: JobKind
    status: JobStatus
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, job: Job) -> "JobRecord":
        return cls(
            job_id=job.job_id,
            url=job.url,
            kind=job.kind,
            status=job.status,
            created_at=job.created_at,
            updated_at=job.updated_at,
        )


@dataclass(frozen=True)
class ResultRecord:
    job_id: str
    url: str
    outcome: Outcome
    document: Optional[str]
    error_message: Optional[str]
    content_checksum: Optional[str]
    raw_content: Optional[str]
    created_at: datetime
    kind: JobKind

    @classmethod
    def from_row(cls, result: Result, kind: JobKind) -> "ResultRecord":
        return cls(
            job_id=result.job_id,
            url=result.url,
            outcome=result.outcome,
            document=result.document,
            error_message=result.error_message,
            content_checksum=result.content_checksum,
            raw_content=result.raw_content,
            created_at=result.created_at,
            kind=kind,
        )


@dataclass(frozen=True)
class JobOutcome:
    """What a worker hands to record_result() when a job terminates."""

    outcome: Outcome
    document: Optional[str] = None
    error_message: Optional[str] = None
    content_checksum: Optional[str] = None
    raw_content: Optional[str] = None

    @classmethod
    def ok(cls, document: str, checksum: str) -> "JobOutcome":
        return cls(Outcome.OK, document=document, content_checksum=checksum)

    @classmethod
    def error(
        cls,
        message: str,
        raw_content: Optional[str] = None,
        checksum: Optional[str] = None,
    ) -> "JobOutcome":
        return cls(
            Outcome.ERROR,
            error_message=message,
            raw_content=raw_content,
            content_checksum=checksum,
        )

    @property
    def terminal_status(self) -> JobStatus:
        return JobStatus.SUCCESS if self.outcome is Outcome.OK else JobStatus.FAILURE


class JobStore:
    """
    Persisted authority for job and result records.

    Safe to share between threads; each operation uses its own session.
    Database errors surface as StoreError.
    """

    def __init__(self, target: Union[str, Path, Engine], create_tables: bool = True):
        self.engine = target if isinstance(target, Engine) else make_engine(target)
        if create_tables:
            Base.metadata.create_all(self.engine)
        self._Session = sessionmaker(bind=self.engine, expire_on_commit=False)

    @contextmanager
    def _session(self):
        session = self._Session()
        try:
            yield session
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"{type(e).__name__}: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Operations for external collaborators (API, scheduler)

    def create_job(self, url: str, kind: JobKind = JobKind.NEW) -> str:
        """
        Insert a QUEUED job.

        Args:
            url: Target website URL
            kind: NEW for first-time generation, UPDATE for a refresh

        Returns:
            The new job_id

        Raises:
            InvalidUrl: If the URL is not an absolute http(s) URL
        """
        if not is_valid_url(url):
            raise InvalidUrl(f"invalid url: {url!r}")

        job_id = str(uuid.uuid4())
        with self._session() as session:
            session.add(Job(job_id=job_id, url=url, kind=JobKind(kind), status=JobStatus.QUEUED))
            session.commit()
        logger.debug("Job created", job_id=job_id, url=url, kind=JobKind(kind).value)
        return job_id

    def mark_started(self, job_id: str) -> bool:
        """Move a QUEUED job to STARTED. Returns False if it was not QUEUED."""
        with self._session() as session:
            changed = self._transition(session, job_id, (JobStatus.QUEUED,), JobStatus.STARTED)
            session.commit()
        return changed

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self._session() as session:
            job = session.get(Job, job_id)
            return JobRecord.from_row(job) if job is not None else None

    def get_result(self, url: str) -> Optional[ResultRecord]:
        """Most recent result for a URL, whatever its outcome."""
        return self._latest_result(url, outcome=None)

    def latest_success(self, url: str) -> Optional[ResultRecord]:
        """Most recent OK result for a URL."""
        return self._latest_result(url, outcome=Outcome.OK)

    def latest_per_url(self) -> Dict[str, ResultRecord]:
        """Most recent result for every URL that has one."""
        query = (
            select(Result, Job.kind)
            .join(Job, Job.job_id == Result.job_id)
            .order_by(Result.created_at.desc(), Result.job_id.desc())
        )
        latest: Dict[str, ResultRecord] = {}
        with self._session() as session:
            for result, kind in session.execute(query):
                if result.url not in latest:
                    latest[result.url] = ResultRecord.from_row(result, kind)
        return latest

    def list_in_progress(self) -> List[JobRecord]:
        """Jobs not yet terminal. For observability only."""
        query = (
            select(Job)
            .where(Job.status.in_(IN_PROGRESS))
            .order_by(Job.created_at, Job.job_id)
        )
        with self._session() as session:
            return [JobRecord.from_row(job) for job in session.scalars(query)]

    # Operations for workers

    def claim_next(self, worker_id: str) -> Optional[JobRecord]:
        """
        Atomically claim the next eligible job and move it to RUNNING.

        Concurrent callers receive disjoint jobs. Rows locked by another
        claimant are skipped (FOR UPDATE SKIP LOCKED where supported), and the
        status change is guarded so that a candidate won by another worker is
        passed over in favour of the next one.

        Args:
            worker_id: Identifier of the claiming worker, for logging

        Returns:
            The claimed job, or None if nothing is eligible
        """
        lost = set()
        with self._session() as session:
            while True:
                job_id = session.execute(self._next_candidate(lost)).scalar_one_or_none()
                if job_id is None:
                    session.rollback()
                    return None

                if self._transition(session, job_id, CLAIMABLE, JobStatus.RUNNING):
                    session.commit()
                    break

                # Another worker claimed it between our select and update
                logger.debug("Claim lost, trying next candidate", job_id=job_id, worker_id=worker_id)
                lost.add(job_id)

            job = session.get(Job, job_id, populate_existing=True)
            record = JobRecord.from_row(job)

        logger.info("Job claimed", job_id=job_id, worker_id=worker_id, url=record.url)
        return record

    def record_result(self, job_id: str, outcome: JobOutcome) -> None:
        """
        Write the job's result and terminal status in one transaction.

        Args:
            job_id: A job currently RUNNING, claimed by the caller
            outcome: The job's outcome

        Raises:
            StoreConflict: If the job does not exist or is not RUNNING
            StoreError: If the database is unavailable
        """
        with self._session() as session:
            job = session.get(Job, job_id)
            if job is None:
                raise StoreConflict(f"unknown job: {job_id}")
            self._write_result(session, job, outcome)
            self._advance_status(session, job_id, outcome.terminal_status)
            session.commit()

        logger.debug(
            "Result recorded",
            job_id=job_id,
            outcome=outcome.outcome.value,
            raw_content_kept=outcome.raw_content is not None,
        )

    # Internals

    def _next_candidate(self, exclude):
        started_first = case((Job.status == JobStatus.STARTED, 0), else_=1)
        query = select(Job.job_id).where(Job.status.in_(CLAIMABLE))
        if exclude:
            query = query.where(Job.job_id.notin_(exclude))
        return (
            query.order_by(started_first, Job.created_at, Job.job_id)
            .limit(1)
            .with_for_update(skip_locked=True)
        )

    def _transition(self, session, job_id: str, from_states, target: JobStatus) -> bool:
        for state in from_states:
            if not can_transition(state, target):
                raise ValueError(f"illegal transition {state.value} -> {target.value}")
        result = session.execute(
            update(Job)
            .where(Job.job_id == job_id, Job.status.in_(from_states))
            .values(status=target, updated_at=datetime.now())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _write_result(self, session, job: Job, outcome: JobOutcome) -> None:
        session.merge(
            Result(
                job_id=job.job_id,
                url=job.url,
                document=outcome.document,
                outcome=outcome.outcome,
                error_message=outcome.error_message,
                content_checksum=outcome.content_checksum,
                raw_content=outcome.raw_content,
                created_at=datetime.now(),
            )
        )
        session.flush()

    def _advance_status(self, session, job_id: str, target: JobStatus) -> None:
        if not self._transition(session, job_id, (JobStatus.RUNNING,), target):
            raise StoreConflict(f"job {job_id} is not running; refusing to record {target.value}")

    def _latest_result(self, url: str, outcome: Optional[Outcome]) -> Optional[ResultRecord]:
        query = select(Result, Job.kind).join(Job, Job.job_id == Result.job_id).where(Result.url == url)
        if outcome is not None:
            query = query.where(Result.outcome == outcome)
        query = query.order_by(Result.created_at.desc(), Result.job_id.desc()).limit(1)
        with self._session() as session:
            row = session.execute(query).first()
            if row is None:
                return None
            result, kind = row
            return ResultRecord.from_row(result, kind)
