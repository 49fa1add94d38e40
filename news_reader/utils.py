"""
utils.py - news_reader
Shared helpers: tag extraction, HTML cleaning, deterministic article ids,
date normalisation and display formatting.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional

from bs4 import BeautifulSoup

from news_reader import config

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Field extraction
# ---------------------------------------------------------------------------

_ATOM_LINK_RE = re.compile(r"""<link[^>]*href=["']([^"']*)["'][^>]*>""")


def extract_tag(fragment: str, tag_name: str) -> Optional[str]:
    """
    Return the trimmed inner text of the first <tag_name ...>...</tag_name>
    in fragment, or None.  Attributes on the opening tag are ignored; the
    match is case-sensitive and spans newlines.  Self-closing tags never match.
    """
    name = re.escape(tag_name)
    match = re.search(rf"<{name}[^>]*>(.*?)</{name}>", fragment, re.DOTALL)
    return match.group(1).strip() if match else None


def extract_link_from_atom(fragment: str) -> Optional[str]:
    """Atom links live in the href attribute of <link>, not in its text."""
    match = _ATOM_LINK_RE.search(fragment)
    return match.group(1) if match else None


# ---------------------------------------------------------------------------
# HTML cleaning
# ---------------------------------------------------------------------------

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

# Order matters: &amp; is decoded last so "&amp;lt;" becomes "&lt;", not "<".
_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

_NOISE_TAGS = ["script", "style", "iframe"]


def clean_html(text: str) -> str:
    """Drop tag markup and decode the common entities.  Used on ingestion."""
    if not text:
        return ""
    text = _TAG_RE.sub("", str(text))
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text.strip()


def clean_html_strict(text: str) -> str:
    """
    Display-side cleaner: removes script/style/iframe blocks including their
    content, then all markup, then collapses whitespace.
    Falls back to the lenient regex strip on BeautifulSoup failure.
    """
    if not text:
        return ""
    try:
        soup = BeautifulSoup(str(text), "html.parser")
        for tag in soup(_NOISE_TAGS):
            tag.decompose()
        plain = soup.get_text()
    except Exception as exc:
        logger.debug("Strict HTML clean fallback (%s)", exc)
        plain = clean_html(text)
    return _WS_RE.sub(" ", plain).strip()


# ---------------------------------------------------------------------------
# Ids
# ---------------------------------------------------------------------------

_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")
_VALID_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")


def _utf16_code_units(value: str) -> List[int]:
    data = value.encode("utf-16-le")
    return [int.from_bytes(data[i:i + 2], "little") for i in range(0, len(data), 2)]


def _to_int32(value: int) -> int:
    return ((value + 0x80000000) & 0xFFFFFFFF) - 0x80000000


def generate_safe_id(source: str, link: str, title: str) -> str:
    """
    Deterministic article id from (source, guid-or-link, title).

    A 31x rolling hash over the UTF-16 code units of "source:link:title",
    wrapped to a signed 32-bit integer at every step.  Collisions are
    possible and tolerated; upserts rely only on determinism.
    """
    h = 0
    for unit in _utf16_code_units(f"{source}:{link}:{title}"):
        h = _to_int32((h << 5) - h + unit)
    prefix = _NON_WORD_RE.sub("", source[:5])
    return f"article_{prefix}_{abs(h):x}"[: config.MAX_ID_LENGTH]


def is_valid_id(value: str) -> bool:
    return bool(value) and bool(_VALID_ID_RE.match(value))


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def truncate_string(value: Optional[str], max_length: int) -> str:
    """Hard cut used for column limits."""
    if not value:
        return ""
    return value[:max_length]


def truncate_text(value: str, max_length: int) -> str:
    """Display truncation with an ellipsis."""
    if not value or len(value) <= max_length:
        return value
    return value[:max_length] + "..."


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def to_iso(dt: datetime) -> str:
    """UTC, millisecond precision, 'Z' suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(datetime.now(timezone.utc))


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO 8601 or RFC 2822 input into an aware datetime, or None."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    raw = str(value).strip()
    if not raw:
        return None

    for attempt in (
        lambda v: datetime.fromisoformat(v.replace("Z", "+00:00")),
        parsedate_to_datetime,
    ):
        try:
            dt = attempt(raw)
        except (TypeError, ValueError, IndexError, OverflowError):
            continue
        if dt is None:
            continue
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def normalize_datetime(value: Any) -> str:
    """Normalise to UTC ISO 8601; missing or unparsable input becomes now()."""
    dt = parse_datetime(value)
    if dt is None:
        if value:
            logger.debug("Could not parse date '%s', using now()", value)
        return now_iso()
    return to_iso(dt)


def format_date(value: Any, now: Optional[datetime] = None) -> str:
    """
    Human-readable date for listings, rendered in the timezone of `now`
    (local time when omitted).
    """
    dt = parse_datetime(value)
    if dt is None:
        logger.warning("Invalid date: %s", value)
        return "日期无效"

    now = now or datetime.now().astimezone()
    local = dt.astimezone(now.tzinfo)
    today = now.date()

    if local.date() == today:
        return f"今天 {local:%H:%M}"
    if local.date() == today - timedelta(days=1):
        return f"昨天 {local:%H:%M}"
    if local.year == now.year:
        return f"{local.month}月{local.day}日"
    return f"{local.year}年{local.month}月{local.day}日"


def generate_id(prefix: str = "") -> str:
    """Random id for user-created rows (highlights, comments)."""
    return f"{prefix}{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"
