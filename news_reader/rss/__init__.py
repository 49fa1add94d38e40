"""Feed retrieval tiers and source registry."""

from .rss_client import build_session, fetch_raw
from .rss_registry import RSS_SOURCES, offline_placeholders
from .third_party import fetch_via_third_party

__all__ = [
    "RSS_SOURCES",
    "build_session",
    "fetch_raw",
    "fetch_via_third_party",
    "offline_placeholders",
]
