"""
Database schema and connection management.

Uses SQLAlchemy for job and result storage. SQLite is the default backend;
any SQLAlchemy URL (e.g. PostgreSQL) works.
"""

import enum
from datetime import datetime
from pathlib import Path
from typing import Union

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class JobStatus(str, enum.Enum):
    QUEUED = "queued"      # newly created job
    STARTED = "started"    # job manager started the job
    RUNNING = "running"    # a worker claimed the job
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILURE)


class JobKind(str, enum.Enum):
    NEW = "new"            # first-time generation
    UPDATE = "update"      # refresh of an existing llms.txt


class Outcome(str, enum.Enum):
    OK = "ok"
    ERROR = "error"


# Allowed forward moves of the job state machine
TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.STARTED, JobStatus.RUNNING},
    JobStatus.STARTED: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.SUCCESS, JobStatus.FAILURE},
    JobStatus.SUCCESS: set(),
    JobStatus.FAILURE: set(),
}

CLAIMABLE = (JobStatus.STARTED, JobStatus.QUEUED)
IN_PROGRESS = (JobStatus.QUEUED, JobStatus.STARTED, JobStatus.RUNNING)


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in TRANSITIONS[current]


def _enum_column(enum_cls):
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=16,
    )


class Job(Base):
    """Job record: one unit of llms.txt generation work for a URL."""

    __tablename__ = "jobs"

    job_id = Column(String(36), primary_key=True)
    url = Column(Text, nullable=False)
    kind = Column(_enum_column(JobKind), nullable=False)
    status = Column(_enum_column(JobStatus), nullable=False, default=JobStatus.QUEUED)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        Index("ix_jobs_status_created", "status", "created_at", "job_id"),
    )

    def __repr__(self) -> str:
        return f"<Job {self.job_id} {self.kind.value} {self.status.value} {self.url!r}>"


class Result(Base):
    """Result record, written together with the job's terminal status."""

    __tablename__ = "results"

    job_id = Column(String(36), ForeignKey("jobs.job_id"), primary_key=True)
    url = Column(Text, nullable=False)
    document = Column(Text, nullable=True)
    outcome = Column(_enum_column(Outcome), nullable=False)
    error_message = Column(Text, nullable=True)
    content_checksum = Column(String(32), nullable=True)  # MD5 of normalized HTML
    raw_content = Column(Text, nullable=True)  # kept when generation failed after a fetch
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("ix_results_url_created", "url", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Result {self.job_id} {self.outcome.value} {self.url!r}>"


def _database_url(target: Union[str, Path]) -> str:
    if isinstance(target, Path):
        return f"sqlite:///{target}"
    return target


def make_engine(target: Union[str, Path]) -> Engine:
    """
    Create an engine for a database URL or SQLite file path.

    Args:
        target: SQLAlchemy URL, or Path to a SQLite database file

    Returns:
        SQLAlchemy engine
    """
    url = _database_url(target)
    if url.startswith("sqlite"):
        path = url.split("///", 1)[-1]
        if path and path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        # Job slots share the engine across threads; writers wait on the file lock
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True)


def init_database(target: Union[str, Path]) -> Engine:
    """
    Initialize database and create tables.

    Args:
        target: SQLAlchemy URL, or Path to SQLite database file

    Returns:
        The engine used to create the tables
    """
    engine = make_engine(target)
    Base.metadata.create_all(engine)
    return engine


def get_session(target: Union[str, Path, Engine]):
    """
    Get database session.

    Args:
        target: Engine, SQLAlchemy URL, or Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    engine = target if isinstance(target, Engine) else make_engine(target)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()
