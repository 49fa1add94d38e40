"""
router.py - news_reader

Runs every configured source through its fallback chain, in order:

  Tier 1: direct feed URLs (primary, fallback, alternates)
  Tier 2: third-party feed-to-JSON parser
  Tier 3: hand-authored static content (only some sources define it)

A source that exhausts all tiers contributes an error, never an exception.
When no source succeeds at all, generic offline placeholders are stored so
readers never see an empty list.  Every item is upserted by its
deterministic id, so repeated or overlapping runs converge on the same rows.

Usage::

    from news_reader.router import IngestionRouter
    router = IngestionRouter(storage)
    result = router.run()
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Optional, Sequence

import requests

from news_reader import config
from news_reader.models import (
    TIER_DIRECT,
    TIER_FAILED,
    TIER_STATIC,
    TIER_THIRD_PARTY,
    FetchFailure,
    IngestionResult,
    NewsItem,
    SourceConfig,
    SourceOutcome,
)
from news_reader.parser import parse_items
from news_reader.rss.rss_client import build_session, fetch_raw
from news_reader.rss.rss_registry import RSS_SOURCES, build_items, offline_placeholders
from news_reader.rss.third_party import fetch_via_third_party
from news_reader.storage import RSS_STATUS_KEY, SQLiteNewsStorage, get_default_storage
from news_reader.utils import now_iso

logger = logging.getLogger(__name__)

ThirdPartyFetcher = Callable[..., Optional[List[NewsItem]]]


class IngestionRouter:
    """
    High-level orchestrator.

    run()            all sources, then placeholders if everything failed
    ingest_source()  one source's fallback chain, no storage writes
    """

    def __init__(
        self,
        storage: SQLiteNewsStorage,
        sources: Sequence[SourceConfig] = RSS_SOURCES,
        session: Optional[requests.Session] = None,
        timeout: float = config.REQUEST_TIMEOUT_SECONDS,
        third_party: Optional[ThirdPartyFetcher] = fetch_via_third_party,
    ) -> None:
        self.storage = storage
        self.sources = tuple(sources)
        self.session = session or build_session()
        self.timeout = timeout
        self.third_party = third_party if config.ENABLE_THIRD_PARTY else None

    # ------------------------------------------------------------------
    # Per source
    # ------------------------------------------------------------------

    def _fetch_direct(self, source: SourceConfig) -> SourceOutcome:
        remaining = source.urls()
        errors: List[str] = []

        while remaining:
            fetched = fetch_raw(remaining, timeout=self.timeout, session=self.session, source_name=source.name)
            errors.extend(fetched.errors)
            if isinstance(fetched, FetchFailure):
                break

            items = parse_items(fetched.body, source.name)
            if items:
                return SourceOutcome(source=source.name, tier=TIER_DIRECT, items=items, errors=errors)

            # An empty or malformed body counts as a failed attempt; move on.
            msg = f"No items parsed from URL {fetched.url} for {source.name}"
            logger.warning("[Router][%s] %s", source.name, msg)
            errors.append(msg)
            remaining = remaining[remaining.index(fetched.url) + 1:]

        return SourceOutcome(source=source.name, tier=TIER_FAILED, errors=errors)

    def ingest_source(self, source: SourceConfig) -> SourceOutcome:
        logger.info("[Router] Processing source: %s", source.name)

        outcome = self._fetch_direct(source)
        if outcome.succeeded:
            return outcome
        url_errors = outcome.errors

        if self.third_party is not None:
            logger.warning("[Router][%s] All direct URLs failed, trying third-party parser", source.name)
            items = self.third_party(source.url, source.name, session=self.session)
            if items:
                return SourceOutcome(source=source.name, tier=TIER_THIRD_PARTY, items=items, errors=url_errors)

        if source.static_items:
            logger.warning("[Router][%s] Using static fallback content", source.name)
            return SourceOutcome(
                source=source.name,
                tier=TIER_STATIC,
                items=build_items(source.static_items, source.name),
                errors=url_errors,
            )

        detail = "; ".join(url_errors) or "no URLs configured"
        return SourceOutcome(
            source=source.name,
            tier=TIER_FAILED,
            errors=[f"All URLs failed for {source.name}: {detail}"],
        )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def _store(self, items: Iterable[NewsItem]) -> int:
        saved = 0
        for item in items:
            try:
                ok = self.storage.upsert_article(item)
            except Exception as exc:
                logger.error("[Router] Error saving item %s: %s", item.id, exc)
                continue
            if ok:
                saved += 1
            else:
                logger.error("[Router] Item not saved: %s", item.id)
        return saved

    def _record_status(self, result: IngestionResult, elapsed: float) -> None:
        try:
            self.storage.set_cache(
                RSS_STATUS_KEY,
                {
                    "hasErrors": bool(result.errors),
                    "errors": list(result.errors),
                    "count": result.saved_count,
                    "processed": result.processed_count,
                    "allSourcesFailed": result.all_sources_failed,
                    "elapsedSeconds": round(elapsed, 1),
                    "lastRun": now_iso(),
                },
                config.STATUS_TTL_SECONDS,
            )
        except Exception as exc:
            logger.error("[Router] Could not record run status: %s", exc)

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> IngestionResult:
        """
        Process all sources sequentially.  Always returns a result; an
        unexpected error ends the run early with partial counts and the
        error message first in `errors`.
        """
        start = time.monotonic()
        result = IngestionResult()
        any_succeeded = False
        logger.info("[Router] === Ingestion run: %d source(s) ===", len(self.sources))

        try:
            for source in self.sources:
                try:
                    outcome = self.ingest_source(source)
                except Exception as exc:
                    outcome = SourceOutcome(
                        source=source.name,
                        tier=TIER_FAILED,
                        errors=[f"Error fetching RSS from {source.name}: {exc}"],
                    )

                if not outcome.succeeded:
                    for msg in outcome.errors:
                        logger.error("[Router][%s] %s", source.name, msg)
                    result.errors.extend(outcome.errors)
                    continue

                any_succeeded = True
                result.processed_count += len(outcome.items)
                saved = self._store(outcome.items)
                result.saved_count += saved
                logger.info(
                    "[Router][%s] %s tier: saved %d of %d item(s)",
                    source.name, outcome.tier, saved, len(outcome.items),
                )

            if not any_succeeded:
                result.all_sources_failed = True
                logger.warning("[Router] All sources failed, saving offline placeholders")
                placeholders = offline_placeholders()
                result.processed_count += len(placeholders)
                result.saved_count += self._store(placeholders)

        except Exception as exc:
            fatal = f"Fatal error in RSS fetch and store process: {exc}"
            logger.exception("[Router] %s", fatal)
            result.errors.insert(0, fatal)

        elapsed = time.monotonic() - start
        logger.info(
            "[Router] Run complete in %.1fs: processed=%d saved=%d errors=%d",
            elapsed, result.processed_count, result.saved_count, len(result.errors),
        )
        self._record_status(result, elapsed)
        return result


def fetch_and_store_rss(storage: Optional[SQLiteNewsStorage] = None, **kwargs) -> dict:
    """Run one ingestion pass and return the summary dict."""
    router = IngestionRouter(storage or get_default_storage(), **kwargs)
    return router.run().to_summary()
