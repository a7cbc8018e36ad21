"""
Tests for change detection.
"""

from ltxworker.database import JobKind
from ltxworker.detector import (
    CHANGED,
    FETCH_FAILED,
    NO_PRIOR,
    PREVIOUS_FAILED,
    UNCHANGED,
    ChangeDetector,
)
from ltxworker.errors import Unreachable
from ltxworker.normalize import content_checksum
from ltxworker.store import JobOutcome

URL = "https://example.com"
PAGE = "<html><body><h1>Example Domain</h1><p>Version one.</p></body></html>"


def record_success(store, url, html):
    job_id = store.create_job(url)
    store.claim_next("test")
    store.record_result(job_id, JobOutcome.ok("# Site\n\n> Summary\n", content_checksum(html)))
    return job_id


def record_failure(store, url, kind=JobKind.NEW):
    job_id = store.create_job(url, kind)
    store.claim_next("test")
    store.record_result(job_id, JobOutcome.error("unreachable: " + url))
    return job_id


class TestCheck:
    """Test single-URL checks."""

    def test_unchanged_content_is_skipped(self, store, stub_fetcher):
        record_success(store, URL, PAGE)
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: PAGE}))

        first = detector.check(URL)
        second = detector.check(URL)

        for report in (first, second):
            assert report.refresh_needed is False
            assert report.reason == UNCHANGED
            assert report.stored_checksum == report.fresh_checksum

    def test_incidental_markup_change_is_skipped(self, store, stub_fetcher):
        record_success(store, URL, PAGE)
        churned = PAGE.replace("<body>", "<body><!-- rendered 12:01 --><script>track()</script>")
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: churned}))

        assert detector.check(URL).reason == UNCHANGED

    def test_changed_content_needs_update(self, store, stub_fetcher):
        record_success(store, URL, PAGE)
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: PAGE.replace("one", "two")}))

        report = detector.check(URL)

        assert report.refresh_needed is True
        assert report.reason == CHANGED
        assert report.kind is JobKind.UPDATE
        assert report.stored_checksum != report.fresh_checksum

    def test_no_prior_success(self, store, stub_fetcher):
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: PAGE}))

        report = detector.check(URL)

        assert report.refresh_needed is True
        assert report.reason == NO_PRIOR
        assert report.kind is JobKind.NEW

    def test_fetch_failure_is_not_a_change(self, store, stub_fetcher):
        record_success(store, URL, PAGE)
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: Unreachable("unreachable: " + URL)}))

        report = detector.check(URL)

        assert report.refresh_needed is False
        assert report.reason == FETCH_FAILED
        assert report.stored_checksum == content_checksum(PAGE)

    def test_compares_against_last_success_not_last_failure(self, store, stub_fetcher):
        record_success(store, URL, PAGE)
        record_failure(store, URL, JobKind.UPDATE)
        detector = ChangeDetector(store, fetcher=stub_fetcher({URL: PAGE}))

        assert detector.check(URL).reason == UNCHANGED


class TestSweep:
    """Test checking every tracked URL."""

    def test_sweep_mixed(self, store, stub_fetcher):
        same = "https://same.example.com"
        moved = "https://moved.example.com"
        broken = "https://broken.example.com"
        record_success(store, same, PAGE)
        record_success(store, moved, PAGE)
        record_failure(store, broken, JobKind.UPDATE)
        fetcher = stub_fetcher({same: PAGE, moved: PAGE.replace("one", "two")})

        reports = {r.url: r for r in ChangeDetector(store, fetcher=fetcher).sweep()}

        assert reports[same].reason == UNCHANGED
        assert reports[moved].reason == CHANGED
        assert reports[broken].reason == PREVIOUS_FAILED
        assert reports[broken].refresh_needed is True
        assert reports[broken].kind is JobKind.UPDATE
        assert broken not in fetcher.calls

    def test_sweep_continues_past_errors(self, store, stub_fetcher):
        first = "https://a.example.com"
        second = "https://b.example.com"
        record_success(store, first, PAGE)
        record_success(store, second, PAGE)
        # KeyError for the URL missing from the stub
        fetcher = stub_fetcher({second: PAGE})

        reports = ChangeDetector(store, fetcher=fetcher).sweep()

        assert [r.url for r in reports] == [second]

    def test_sweep_empty_store(self, store, stub_fetcher):
        assert ChangeDetector(store, fetcher=stub_fetcher({})).sweep() == []
