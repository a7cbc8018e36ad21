"""
HTML normalization and checksums.

The worker and the change detector must use exactly these functions:
a checksum computed with different normalization rules would drift and
cause spurious or missed refreshes.
"""

import hashlib
import re
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Comment, Doctype

# Elements that carry no page content
STRIP_TAGS = ["script", "style", "noscript", "template"]

_WHITESPACE = re.compile(r"\s+")


def normalize_text(s: str) -> str:
    return " ".join(s.strip().split())


def is_valid_url(url: str) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    try:
        p = urlparse(url.strip())
    except ValueError:
        return False
    return p.scheme in ("http", "https") and bool(p.netloc)


def normalize_html(html: str) -> str:
    """
    Remove non-semantic markup so checksums ignore incidental churn.

    Drops comments, script/style/noscript/template elements, stylesheet links,
    inline style and on* handler attributes, and collapses whitespace in text.
    Idempotent: normalize_html(normalize_html(x)) == normalize_html(x).
    """
    soup = BeautifulSoup(html, "html.parser")

    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()

    for tag in soup.find_all(STRIP_TAGS):
        # nested matches go away with their parent
        if not tag.decomposed:
            tag.decompose()

    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if "stylesheet" in [r.lower() for r in rel]:
            link.decompose()

    for tag in soup.find_all(True):
        for attr in list(tag.attrs):
            if attr == "style" or attr.lower().startswith("on"):
                del tag.attrs[attr]

    # Removals leave split text runs ("foo ", " bar"); merge before collapsing
    soup.smooth()

    for text in soup.find_all(string=True):
        if isinstance(text, Doctype):
            continue
        collapsed = _WHITESPACE.sub(" ", str(text))
        if collapsed.strip() == "":
            text.extract()
        elif collapsed != str(text):
            text.replace_with(collapsed)

    return str(soup).strip()


def compute_checksum(normalized: str) -> str:
    """MD5 hex digest of normalized content (32 characters)."""
    return hashlib.md5(normalized.encode("utf-8")).hexdigest()


def content_checksum(html: str) -> str:
    """Normalize then checksum. Shorthand for callers holding raw HTML."""
    return compute_checksum(normalize_html(html))
