"""
Tests for IngestionRouter: tier ordering, run-level fallbacks, counts and
status recording.  Feeds are served by fake sessions; nothing hits the network.
"""

from unittest.mock import MagicMock, patch

import pytest

from news_reader.models import (
    TIER_DIRECT,
    TIER_FAILED,
    TIER_STATIC,
    TIER_THIRD_PARTY,
    NewsItem,
    SourceConfig,
)
from news_reader.router import IngestionRouter, fetch_and_store_rss
from news_reader.rss.rss_registry import HUXIU_FALLBACK

PRIMARY = "https://feed.example/primary"
FALLBACK = "https://feed.example/fallback"
ALTERNATE = "https://feed.example/alt"


@pytest.fixture
def source():
    return SourceConfig(name="Feed", url=PRIMARY, fallback_url=FALLBACK, alternate_urls=(ALTERNATE,))


@pytest.fixture
def no_third_party():
    return MagicMock(return_value=None)


class TestIngestSource:
    def test_direct_primary(self, storage, source, make_session, make_response, rss_body, no_third_party):
        session = make_session({PRIMARY: make_response(text=rss_body)})
        router = IngestionRouter(storage, [source], session=session, third_party=no_third_party)
        outcome = router.ingest_source(source)
        assert outcome.tier == TIER_DIRECT
        assert len(outcome.items) == 2
        no_third_party.assert_not_called()

    def test_fallback_used_when_primary_fails(self, storage, source, make_session, make_response, rss_body):
        session = make_session({
            PRIMARY: make_response(status_code=500, reason="Server Error"),
            FALLBACK: make_response(text=rss_body),
        })
        outcome = IngestionRouter(storage, [source], session=session).ingest_source(source)
        assert outcome.tier == TIER_DIRECT
        assert [i.title for i in outcome.items] == ["First story", "Second story"]
        assert any(PRIMARY in e for e in outcome.errors)

    def test_unparseable_body_moves_to_next_url(self, storage, source, make_session, make_response, rss_body):
        session = make_session({
            PRIMARY: make_response(text="<html>maintenance</html>"),
            FALLBACK: make_response(text=rss_body),
        })
        outcome = IngestionRouter(storage, [source], session=session).ingest_source(source)
        assert outcome.tier == TIER_DIRECT
        assert len(outcome.items) == 2
        assert any("No items parsed" in e for e in outcome.errors)

    def test_earlier_failures_kept_in_source_error(self, storage, source, make_session, make_response, no_third_party):
        session = make_session({
            PRIMARY: make_response(status_code=500, reason="Server Error"),
            FALLBACK: make_response(text="<html/>"),
        })
        router = IngestionRouter(storage, [source], session=session, third_party=no_third_party)
        outcome = router.ingest_source(source)
        assert outcome.tier == TIER_FAILED
        message = outcome.errors[0]
        assert f"{PRIMARY} for Feed: 500" in message
        assert f"No items parsed from URL {FALLBACK}" in message
        assert ALTERNATE in message
        assert message.index(PRIMARY) < message.index(FALLBACK) < message.index(ALTERNATE)

    def test_third_party_after_direct_failure(self, storage, source, make_session):
        converted = [NewsItem(id="tp1", title="T", description="D", link="l", pub_date="", source="Feed")]
        third_party = MagicMock(return_value=converted)
        router = IngestionRouter(storage, [source], session=make_session({}), third_party=third_party)
        outcome = router.ingest_source(source)
        assert outcome.tier == TIER_THIRD_PARTY
        assert outcome.items == converted
        assert third_party.call_args.args == (PRIMARY, "Feed")

    def test_static_content_last(self, storage, make_session, no_third_party):
        huxiu = SourceConfig(name="虎嗅", url=PRIMARY, static_items=HUXIU_FALLBACK)
        router = IngestionRouter(storage, [huxiu], session=make_session({}), third_party=no_third_party)
        outcome = router.ingest_source(huxiu)
        assert outcome.tier == TIER_STATIC
        assert [i.id for i in outcome.items] == ["huxiu_fallback_1", "huxiu_fallback_2"]
        assert all(i.source == "虎嗅" for i in outcome.items)

    def test_source_failure(self, storage, source, make_session, no_third_party):
        router = IngestionRouter(storage, [source], session=make_session({}), third_party=no_third_party)
        outcome = router.ingest_source(source)
        assert outcome.tier == TIER_FAILED
        assert outcome.items == []
        assert outcome.errors[0].startswith("All URLs failed for Feed:")


class TestRun:
    def test_counts_and_storage(self, storage, source, make_session, make_response, rss_body):
        session = make_session({PRIMARY: make_response(text=rss_body)})
        result = IngestionRouter(storage, [source], session=session).run()
        assert result.processed_count == 2
        assert result.saved_count == 2
        assert result.errors == []
        assert storage.count_articles() == 2
        assert result.all_sources_failed is False

    def test_repeated_runs_are_idempotent(self, storage, source, make_session, make_response, rss_body):
        session = make_session({PRIMARY: make_response(text=rss_body)})
        router = IngestionRouter(storage, [source], session=session)
        router.run()
        first_ids = {a.id for a in storage.get_latest_articles(50)}
        router.run()
        assert {a.id for a in storage.get_latest_articles(50)} == first_ids
        assert storage.count_articles() == 2

    def test_total_failure_stores_placeholders(self, storage, source, make_session, no_third_party):
        other = SourceConfig(name="Other", url="https://other.example/feed")
        router = IngestionRouter(storage, [source, other], session=make_session({}), third_party=no_third_party)
        result = router.run()
        assert result.saved_count >= 1
        assert len(result.errors) == 2
        assert storage.get_article_by_id("fallback-1").source == "系统消息"
        assert result.to_summary()["errors"] == result.errors
        assert result.all_sources_failed is True

    def test_one_failing_source_does_not_stop_others(
        self, storage, source, make_session, make_response, rss_body, no_third_party
    ):
        broken = SourceConfig(name="Broken", url="https://broken.example/feed")
        session = make_session({PRIMARY: make_response(text=rss_body)})
        result = IngestionRouter(storage, [broken, source], session=session, third_party=no_third_party).run()
        assert result.saved_count == 2
        assert len(result.errors) == 1
        assert result.all_sources_failed is False
        assert storage.get_article_by_id("fallback-1") is None

    def test_static_tier_counts_as_success(self, storage, make_session, no_third_party):
        huxiu = SourceConfig(name="虎嗅", url=PRIMARY, static_items=HUXIU_FALLBACK)
        result = IngestionRouter(storage, [huxiu], session=make_session({}), third_party=no_third_party).run()
        assert result.saved_count == 2
        assert result.processed_count == 2
        assert storage.get_article_by_id("fallback-1") is None

    def test_item_save_failure_is_skipped(self, source, make_session, make_response, rss_body):
        store = MagicMock()
        store.upsert_article.side_effect = [RuntimeError("disk full"), True]
        session = make_session({PRIMARY: make_response(text=rss_body)})
        result = IngestionRouter(store, [source], session=session).run()
        assert result.processed_count == 2
        assert result.saved_count == 1

    def test_unexpected_error_returns_partial_result(self, storage, source, make_session, no_third_party):
        router = IngestionRouter(storage, [source], session=make_session({}), third_party=no_third_party)
        with patch("news_reader.router.offline_placeholders", side_effect=RuntimeError("boom")):
            result = router.run()
        assert result.errors[0] == "Fatal error in RSS fetch and store process: boom"
        assert result.saved_count == 0

    def test_status_recorded(self, storage, source, make_session, no_third_party):
        IngestionRouter(storage, [source], session=make_session({}), third_party=no_third_party).run()
        status = storage.get_rss_status()
        assert status["hasErrors"] is True
        assert status["count"] == 2
        assert status["lastRun"]


def test_fetch_and_store_summary(storage, source, make_session, make_response, rss_body):
    session = make_session({PRIMARY: make_response(text=rss_body)})
    summary = fetch_and_store_rss(storage, sources=[source], session=session)
    assert summary == {"count": 2, "processed": 2}
