"""
Pytest configuration and shared fixtures.
"""

from typing import Dict

import pytest

from ltxworker.errors import FetchError
from ltxworker.fetch import FetchedContent
from ltxworker.normalize import compute_checksum, normalize_html
from ltxworker.store import JobStore

VALID_LLMS_TXT = """\
# Example Domain

> Example Domain is reserved for use in illustrative examples in documents.

This domain may be used in literature without prior coordination or asking for permission.

## Docs

- [More information](https://www.iana.org/domains/example): IANA page about example domains

## Optional

- [RFC 2606](https://www.rfc-editor.org/rfc/rfc2606)
"""


@pytest.fixture
def sample_html() -> str:
    """Sample page HTML with scripts, styles and comments."""
    return """
    <!DOCTYPE html>
    <html>
    <head>
        <title>Example Domain</title>
        <style>body { color: red; }</style>
        <link rel="stylesheet" href="/site.css">
        <script>console.log("hi")</script>
    </head>
    <body onload="init()">
        <!-- build 1234 -->
        <div style="margin: 0">
            <h1>Example   Domain</h1>
            <p>This domain is for use in
               illustrative examples.</p>
            <a href="https://www.iana.org/domains/example">More information...</a>
        </div>
    </body>
    </html>
    """


@pytest.fixture
def valid_llms_txt() -> str:
    return VALID_LLMS_TXT


@pytest.fixture
def store(tmp_path) -> JobStore:
    """A fresh SQLite-backed job store."""
    return JobStore(tmp_path / "jobs.db")


class StubFetcher:
    """Stands in for fetch_content: serves HTML per URL or raises a FetchError."""

    def __init__(self, pages: Dict[str, object]):
        self.pages = pages
        self.calls = []

    def __call__(self, url: str, timeout: float = 15.0) -> FetchedContent:
        self.calls.append(url)
        page = self.pages[url]
        if isinstance(page, FetchError):
            raise page
        normalized = normalize_html(page)
        return FetchedContent(url=url, raw=page, normalized=normalized,
                              checksum=compute_checksum(normalized))


@pytest.fixture
def stub_fetcher():
    """Factory for StubFetcher instances."""
    return StubFetcher
