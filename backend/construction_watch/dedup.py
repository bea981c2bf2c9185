"""
Content hashing for scraped articles.
Two results with the same (url, title) after normalization always share a hash,
so repeated runs and re-shared links don't create duplicate suggestions.
"""

import hashlib
import re
import unicodedata
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode

TRACKING_PARAMS = {
    'utm_source', 'utm_medium', 'utm_campaign', 'utm_content',
    'ref', 'fbclid', 'gclid',
}

_WS_RE = re.compile(r'\s+')


def normalize_url(url: str) -> str:
    """Normalize URL for comparison (drop tracking params, lowercase host)."""
    try:
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute url: {url!r}")

        params = [
            (k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True)
            if k not in TRACKING_PARAMS
        ]
        netloc = parts.netloc.lower()
        return urlunsplit((parts.scheme.lower(), netloc, parts.path, urlencode(params), parts.fragment))
    except ValueError:
        return url.strip().lower()


def normalize_text(text: str) -> str:
    """Lowercase, NFC-compose and collapse whitespace."""
    text = unicodedata.normalize('NFC', text or '').lower()
    return _WS_RE.sub(' ', text).strip()


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode('utf-8')).hexdigest()


def content_hash(url: str, title: str) -> str:
    """Digest of normalized url + '|' + normalized title."""
    return _sha256(f"{normalize_url(url)}|{normalize_text(title)}")


def body_hash(text: str) -> str:
    return _sha256(normalize_text(text))


class ContentHasher:
    """Injectable wrapper around the module level hash functions."""

    def hash(self, url: str, title: str) -> str:
        return content_hash(url, title)

    def hash_body(self, text: str) -> str:
        return body_hash(text)
