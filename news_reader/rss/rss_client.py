"""
rss/rss_client.py - news_reader

Direct feed retrieval with ordered URL fallback:
  - one requests.Session carrying browser-like headers
  - per-attempt timeout
  - only 2xx responses count as success
  - every failed attempt's reason is kept for the run summary
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union

import requests

from news_reader import config
from news_reader.models import FetchFailure, FetchSuccess

logger = logging.getLogger(__name__)


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({
        "User-Agent": config.USER_AGENT,
        "Accept": config.ACCEPT_HEADER,
        "Cache-Control": "no-cache",
    })
    return session


def fetch_raw(
    urls: Sequence[str],
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
    session: Optional[requests.Session] = None,
    source_name: str = "",
) -> Union[FetchSuccess, FetchFailure]:
    """
    Try each URL strictly in order and return the first 2xx body.

    Non-2xx statuses, timeouts and connection errors all advance to the next
    URL.  Never raises: when every URL fails the FetchFailure carries one
    reason per attempt.
    """
    session = session or build_session()
    label = source_name or "feed"
    errors: List[str] = []

    for url in urls:
        if not url:
            continue
        logger.debug("[RSS][%s] Trying URL: %s", label, url)
        try:
            resp = session.get(url, timeout=timeout)
        except requests.Timeout:
            msg = f"Timed out after {timeout:.0f}s fetching {url} for {label}"
            logger.error("[RSS][%s] %s", label, msg)
            errors.append(msg)
            continue
        except requests.RequestException as exc:
            msg = f"Error fetching from URL {url} for {label}: {exc}"
            logger.error("[RSS][%s] %s", label, msg)
            errors.append(msg)
            continue

        if not 200 <= resp.status_code < 300:
            msg = f"Failed to fetch from URL {url} for {label}: {resp.status_code} {resp.reason or ''}".rstrip()
            logger.warning("[RSS][%s] %s", label, msg)
            errors.append(msg)
            continue

        logger.info("[RSS][%s] Fetched feed from %s", label, url)
        return FetchSuccess(body=resp.text, url=url, errors=errors)

    logger.error("[RSS][%s] All URLs failed", label)
    return FetchFailure(errors=errors)
