"""
rss/third_party.py - news_reader

Best-effort fallback through a feed-to-JSON conversion service (rss2json).
The service's item shape is re-mapped onto NewsItem with the same id
generator and cleaner as the native parser.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from news_reader import config
from news_reader.models import NewsItem
from news_reader.utils import clean_html, generate_safe_id, now_iso

logger = logging.getLogger(__name__)


def _to_news_item(raw: Dict[str, Any], source_name: str) -> NewsItem:
    title = (raw.get("title") or "").strip() or config.UNTITLED
    link = (raw.get("link") or "").strip()
    return NewsItem(
        id=generate_safe_id(source_name, raw.get("guid") or link, title),
        title=title,
        description=clean_html(raw.get("description") or ""),
        content=raw.get("content") or "",
        link=link,
        pub_date=raw.get("pubDate") or now_iso(),
        source=source_name,
    )


def fetch_via_third_party(
    source_url: str,
    source_name: str,
    session: Optional[requests.Session] = None,
    timeout: float = config.THIRD_PARTY_TIMEOUT_SECONDS,
) -> Optional[List[NewsItem]]:
    """
    Ask the conversion service for source_url.

    Returns None on transport errors, non-2xx responses, undecodable bodies
    or a service status other than "ok".  Never raises.
    """
    http = session or requests
    logger.info("[ThirdParty][%s] Trying third-party parser", source_name)
    try:
        resp = http.get(
            config.THIRD_PARTY_API_URL,
            params={"rss_url": source_url},
            headers={"User-Agent": config.THIRD_PARTY_USER_AGENT},
            timeout=timeout,
        )
        if not 200 <= resp.status_code < 300:
            logger.warning("[ThirdParty][%s] HTTP %s", source_name, resp.status_code)
            return None

        data = resp.json()
        if not isinstance(data, dict) or data.get("status") != "ok":
            logger.warning(
                "[ThirdParty][%s] Service status: %s",
                source_name, data.get("status") if isinstance(data, dict) else "invalid",
            )
            return None

        items = [_to_news_item(raw, source_name) for raw in data.get("items") or [] if isinstance(raw, dict)]
        logger.info("[ThirdParty][%s] %d item(s)", source_name, len(items))
        return items
    except Exception as exc:
        logger.error("[ThirdParty][%s] Failed: %s", source_name, exc)
        return None
