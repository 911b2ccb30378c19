from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import urlparse

from bs4 import BeautifulSoup


def is_valid_url(url: str | None) -> bool:
    """Absolute http(s) URL with a host."""
    if not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def strip_html(html: str | None) -> str:
    """Visible text of an HTML fragment, entities decoded, whitespace collapsed."""
    if not html:
        return ""
    return clean_content(BeautifulSoup(html, "html.parser").get_text(" "))


def clean_content(text: str, max_length: int | None = None) -> str:
    """Collapse whitespace, optionally trim to max length."""
    text = re.sub(r"\s+", " ", text).strip()
    if max_length is not None and len(text) > max_length:
        text = text[:max_length]
    return text


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return len(text.split())


def parse_datetime(value: str | None) -> datetime | None:
    """Parse ISO-8601 timestamps as returned by news APIs ("2024-01-15T10:00:00Z")."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
