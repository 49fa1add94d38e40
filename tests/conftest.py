"""Shared fixtures: temporary SQLite storage and fake HTTP sessions."""

from unittest.mock import MagicMock

import pytest
import requests

from news_reader.storage import SQLiteNewsStorage


RSS_BODY = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel>
<title>Test feed</title>
<item>
  <title>First story</title>
  <link>https://example.com/1</link>
  <guid>https://example.com/1</guid>
  <description>&lt;p&gt;Body one&lt;/p&gt;</description>
  <pubDate>Mon, 01 Jan 2024 08:00:00 GMT</pubDate>
</item>
<item>
  <title>Second story</title>
  <link>https://example.com/2</link>
  <description>Body two</description>
  <pubDate>Tue, 02 Jan 2024 08:00:00 GMT</pubDate>
</item>
</channel></rss>
"""


def _response(status_code=200, text="", json_data=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    resp.reason = reason
    resp.json.return_value = json_data
    return resp


@pytest.fixture
def storage(tmp_path):
    """Fresh database per test."""
    return SQLiteNewsStorage(tmp_path / "news.db")


@pytest.fixture
def rss_body():
    return RSS_BODY


@pytest.fixture
def make_response():
    return _response


@pytest.fixture
def make_session():
    """
    Build a session whose get() answers from a url -> response mapping.
    Exceptions in the mapping are raised; unknown URLs raise ConnectionError.
    """
    def _factory(routes):
        session = MagicMock()

        def _get(url, **kwargs):
            outcome = routes.get(url)
            if outcome is None:
                raise requests.ConnectionError(f"no route to {url}")
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        session.get.side_effect = _get
        return session

    return _factory
