import argparse
import threading
from pathlib import Path

from . import __version__
from .config import WorkerConfig
from .database import JobKind, init_database
from .detector import ChangeDetector
from .env import load_env
from .errors import ConfigError, InvalidUrl
from .health import HealthServer
from .llm import OpenAIProvider
from .logger import get_logger
from .pipeline import GenerationPipeline
from .schema import validate_document
from .store import JobStore
from .worker import Worker


def _store(args: argparse.Namespace) -> JobStore:
    return JobStore(args.database_url)


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def cmd_init_db(args: argparse.Namespace) -> None:
    init_database(args.database_url)
    print(f"Initialized database: {args.database_url}")


def cmd_submit(args: argparse.Namespace) -> None:
    try:
        job_id = _store(args).create_job(args.url, JobKind(args.kind))
    except InvalidUrl as e:
        raise SystemExit(str(e))
    print(f"Job: {job_id}")


def cmd_start(args: argparse.Namespace) -> None:
    if not _store(args).mark_started(args.job_id):
        raise SystemExit(f"Job {args.job_id} is not queued")
    print(f"Started: {args.job_id}")


def cmd_status(args: argparse.Namespace) -> None:
    job = _store(args).get_job(args.job_id)
    if job is None:
        raise SystemExit(f"Job not found: {args.job_id}")
    print(f"Job: {job.job_id}")
    print(f"  URL: {job.url}")
    print(f"  Kind: {job.kind.value}")
    print(f"  Status: {job.status.value}")


def cmd_result(args: argparse.Namespace) -> None:
    result = _store(args).get_result(args.url)
    if result is None:
        raise SystemExit(f"No result for {args.url}")
    print(f"Job: {result.job_id} ({result.outcome.value})")
    if result.error_message:
        print(f"Error: {result.error_message}")
    if result.document:
        print()
        print(result.document)


def cmd_in_progress(args: argparse.Namespace) -> None:
    jobs = _store(args).list_in_progress()
    if not jobs:
        print("No jobs in progress.")
        return
    for job in jobs:
        print(f"[{job.status.value}] {job.job_id} {job.kind.value} {job.url}")


def cmd_detect(args: argparse.Namespace) -> None:
    detector = ChangeDetector(_store(args), fetch_timeout=args.config.fetch_timeout)
    reports = [detector.check(args.url)] if args.url else detector.sweep()
    for r in reports:
        flag = "refresh" if r.refresh_needed else "skip"
        print(f"[{flag}] {r.url} ({r.reason}, kind={r.kind.value})")
    print(f"Done. checked={len(reports)} refresh={sum(r.refresh_needed for r in reports)}")


def cmd_validate(args: argparse.Namespace) -> None:
    path = Path(args.file)
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    errors = validate_document(path.read_text(encoding="utf-8"))
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_worker(args: argparse.Namespace) -> None:
    config = args.config
    if args.concurrency is not None:
        config.max_concurrency = args.concurrency

    provider = OpenAIProvider(
        model=config.model_name,
        api_key=config.api_key,
        base_url=config.base_url,
        timeout=config.model_timeout,
    )
    worker = Worker(
        store=_store(args),
        pipeline=GenerationPipeline(provider, max_repairs=config.repair_retries),
        config=config,
    )

    health = HealthServer(worker.is_alive, port=config.health_port).start() if config.health_port else None
    stop = threading.Event()
    try:
        worker.run(stop)
    except KeyboardInterrupt:
        stop.set()
    finally:
        if health is not None:
            health.stop()


def main():
    # Load .env if present (DATABASE_URL, OPENAI_API_KEY, etc.)
    load_env()
    try:
        config = WorkerConfig.from_env()
    except ConfigError as e:
        raise SystemExit(f"Configuration error: {e}")
    get_logger().set_level(config.log_level)

    parser = argparse.ArgumentParser(prog="ltxworker", description="llms.txt job queue and worker")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--database-url", default=config.database_url,
                        help=f"SQLAlchemy database URL (default: {config.database_url})")

    subparsers = parser.add_subparsers(dest="command")
    ini = subparsers.add_parser("init-db", help="Create the job and result tables")
    ini.set_defaults(func=cmd_init_db)

    sub = subparsers.add_parser("submit", help="Queue an llms.txt job for a URL")
    sub.add_argument("--url", required=True, help="Website URL")
    sub.add_argument("--kind", choices=[k.value for k in JobKind], default=JobKind.NEW.value,
                     help="new (first generation) or update (refresh)")
    sub.set_defaults(func=cmd_submit)

    sta = subparsers.add_parser("start", help="Mark a queued job as started")
    sta.add_argument("--job-id", required=True)
    sta.set_defaults(func=cmd_start)

    stt = subparsers.add_parser("status", help="Show a job's state")
    stt.add_argument("--job-id", required=True)
    stt.set_defaults(func=cmd_status)

    res = subparsers.add_parser("result", help="Show the latest result for a URL")
    res.add_argument("--url", required=True)
    res.set_defaults(func=cmd_result)

    inp = subparsers.add_parser("in-progress", help="List queued, started and running jobs")
    inp.set_defaults(func=cmd_in_progress)

    wrk = subparsers.add_parser("worker", help="Run the worker poll loop")
    wrk.add_argument("--concurrency", type=_positive_int, help="Override WORKER_MAX_CONCURRENCY")
    wrk.set_defaults(func=cmd_worker)

    det = subparsers.add_parser("detect", help="Report which URLs need a refresh")
    det.add_argument("--url", help="Check a single URL instead of every tracked URL")
    det.set_defaults(func=cmd_detect)

    val = subparsers.add_parser("validate", help="Validate a file as llms.txt")
    val.add_argument("--file", required=True, help="Path to llms.txt file")
    val.set_defaults(func=cmd_validate)

    args = parser.parse_args()
    args.config = config

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
