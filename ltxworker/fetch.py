"""Content Fetcher: retrieve a URL and normalize its HTML."""

from dataclasses import dataclass

import requests

from .errors import InvalidUrl, NonSuccessStatus, Unreachable
from .logger import get_logger
from .normalize import compute_checksum, is_valid_url, normalize_html

logger = get_logger()

DEFAULT_TIMEOUT = 15.0
USER_AGENT = "ltxworker/0.1 (+llms.txt generator)"


@dataclass(frozen=True)
class FetchedContent:
    url: str
    raw: str
    normalized: str
    checksum: str


def fetch_content(url: str, timeout: float = DEFAULT_TIMEOUT) -> FetchedContent:
    """Fetch a URL and normalize its HTML.

    No retries here; callers decide whether to try again.

    Args:
        url: Absolute http(s) URL
        timeout: Seconds before the request is abandoned

    Returns:
        FetchedContent with raw HTML, normalized HTML and its checksum

    Raises:
        InvalidUrl: URL is not an absolute http(s) URL
        Unreachable: DNS, connection or timeout failure
        NonSuccessStatus: Server answered with a non-2xx status
    """
    if not is_valid_url(url):
        raise InvalidUrl(f"invalid url: {url!r}")

    try:
        resp = requests.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
    except requests.exceptions.Timeout:
        logger.warning("Request timed out", url=url, timeout=timeout)
        raise Unreachable(f"unreachable: request timed out after {timeout}s: {url}")
    except requests.exceptions.InvalidURL as e:
        raise InvalidUrl(f"invalid url: {url!r} ({e})")
    except requests.exceptions.RequestException as e:
        logger.warning("Request failed", url=url, error=str(e))
        raise Unreachable(f"unreachable: {url} ({type(e).__name__})")

    if not 200 <= resp.status_code < 300:
        logger.warning("Non-success status", url=url, status=resp.status_code)
        raise NonSuccessStatus(resp.status_code, url)

    raw = resp.text
    normalized = normalize_html(raw)
    checksum = compute_checksum(normalized)
    logger.debug(
        "Fetched content",
        url=url,
        raw_bytes=len(raw),
        normalized_bytes=len(normalized),
        checksum=checksum,
    )
    return FetchedContent(url=url, raw=raw, normalized=normalized, checksum=checksum)
