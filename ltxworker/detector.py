"""
Change Detector.

Decides, per tracked URL, whether a refresh job is warranted by comparing the
checksum stored with the URL's most recent successful result against a
freshly fetched one. Uses the same fetch/normalize/checksum path as the
worker. Creating the jobs, and how often to run, is the scheduler's business.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional

from .database import JobKind, Outcome
from .errors import FetchError
from .fetch import FetchedContent, fetch_content
from .logger import get_logger
from .store import JobStore, ResultRecord

logger = get_logger()

CHANGED = "changed"
UNCHANGED = "unchanged"
NO_PRIOR = "no_prior_success"
PREVIOUS_FAILED = "previous_failed"
FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class ChangeReport:
    url: str
    refresh_needed: bool
    reason: str
    kind: JobKind
    stored_checksum: Optional[str] = None
    fresh_checksum: Optional[str] = None


class ChangeDetector:
    def __init__(
        self,
        store: JobStore,
        fetcher: Callable[..., FetchedContent] = fetch_content,
        fetch_timeout: float = 15.0,
    ):
        self.store = store
        self.fetcher = fetcher
        self.fetch_timeout = fetch_timeout

    def check(self, url: str, previous: Optional[ResultRecord] = None) -> ChangeReport:
        """
        Compare a URL's current content against its last successful result.

        Args:
            url: Tracked URL
            previous: Last OK result, if the caller already has it

        Returns:
            ChangeReport; refresh_needed on checksum mismatch or no prior success
        """
        if previous is None:
            previous = self.store.latest_success(url)
        kind = JobKind.UPDATE if previous is not None else JobKind.NEW
        stored = previous.content_checksum if previous is not None else None

        try:
            fresh = self.fetcher(url, timeout=self.fetch_timeout).checksum
        except FetchError as e:
            logger.warning("Change check fetch failed", url=url, error=str(e))
            return ChangeReport(url, False, FETCH_FAILED, kind, stored_checksum=stored)

        if previous is None:
            logger.info("No prior success, refresh needed", url=url)
            return ChangeReport(url, True, NO_PRIOR, kind, fresh_checksum=fresh)

        if fresh == stored:
            logger.info("HTML unchanged, skipping", url=url, checksum=stored)
            return ChangeReport(url, False, UNCHANGED, kind, stored, fresh)

        logger.info("HTML changed, refresh needed", url=url, old=stored, new=fresh)
        return ChangeReport(url, True, CHANGED, kind, stored, fresh)

    def sweep(self) -> List[ChangeReport]:
        """
        Check every URL with a result.

        A URL whose latest result is an error is reported for regeneration
        with the same kind as the failed job, without fetching.
        A failure on one URL never stops the sweep.
        """
        latest = self.store.latest_per_url()
        logger.info("Found URLs to check", count=len(latest))

        reports: List[ChangeReport] = []
        for url, record in latest.items():
            if record.outcome is Outcome.ERROR:
                logger.info("Previous attempt failed, regenerating", url=url, kind=record.kind.value)
                reports.append(ChangeReport(url, True, PREVIOUS_FAILED, record.kind))
                continue
            try:
                reports.append(self.check(url, previous=record))
            except Exception as e:
                logger.error("Change check failed", url=url, error=str(e))
        return reports
