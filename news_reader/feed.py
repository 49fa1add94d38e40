"""
Read side of the reader: latest articles served through an in-process TTL
cache in front of the database.

The cache is per process and unsynchronised; a stale read between
ingestion runs is acceptable.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from news_reader import config
from news_reader.models import NewsItem
from news_reader.storage import SQLiteNewsStorage
from news_reader.utils import now_iso

logger = logging.getLogger(__name__)

LATEST_NEWS_KEY = "latest-news"


class MemoryCache:
    """
    In-memory key/value cache with expiration.

    Features:
    - Per-key expiry stamped at write time
    - Force refresh flag on read
    - Manual cleanup of stale entries
    """

    def __init__(self, ttl_seconds: float = config.CACHE_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str, force_refresh: bool = False) -> Optional[Any]:
        """
        Return the cached value if present and not expired.

        Args:
            key: Cache key
            force_refresh: Bypass the cache

        Returns:
            Cached value, or None
        """
        if force_refresh:
            logger.debug("Cache: force refresh requested for %s", key)
            return None

        entry = self._entries.get(key)
        if entry is None:
            return None

        expiry, value = entry
        if expiry <= time.monotonic():
            logger.debug("Cache expired for %s", key)
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (time.monotonic() + ttl, value)

    def clear(self, key: Optional[str] = None) -> None:
        """Clear one key, or everything when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def cleanup_stale(self) -> int:
        """
        Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = time.monotonic()
        stale = [k for k, (expiry, _) in self._entries.items() if expiry <= now]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.info("Cleaned up %d stale cache entr%s", len(stale), "y" if len(stale) == 1 else "ies")
        return len(stale)

    def stats(self) -> Dict[str, Any]:
        return {"entries": len(self._entries), "ttl_seconds": self.ttl_seconds}


def offline_news() -> List[NewsItem]:
    return [
        NewsItem(
            id="offline-1",
            title="离线模式 - 无法连接到服务器",
            description="您当前处于离线模式，无法获取最新内容。请检查网络连接并刷新页面。",
            link="#",
            pub_date=now_iso(),
            source=config.SYSTEM_SOURCE,
        )
    ]


class NewsFeed:
    """Latest-news reader with cache and offline fallback."""

    def __init__(
        self,
        storage: SQLiteNewsStorage,
        cache: Optional[MemoryCache] = None,
        limit: int = config.LATEST_ARTICLES_LIMIT,
    ) -> None:
        self.storage = storage
        self.cache = cache or MemoryCache()
        self.limit = limit

    def fetch_news(self, force_refresh: bool = False) -> List[NewsItem]:
        cached = self.cache.get(LATEST_NEWS_KEY, force_refresh=force_refresh)
        if cached is not None:
            logger.debug("Using memory cache for news")
            return cached

        try:
            articles = self.storage.get_latest_articles(self.limit)
        except Exception as exc:
            logger.error("Error fetching news: %s; using offline data", exc)
            return offline_news()

        logger.info("Retrieved %d article(s) from database", len(articles))
        self.cache.set(LATEST_NEWS_KEY, articles)
        return articles

    def invalidate(self) -> None:
        self.cache.clear(LATEST_NEWS_KEY)
