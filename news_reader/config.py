"""Configuration for news_reader ingestion and storage."""

from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(var_name: str, default: bool = False) -> bool:
    raw = os.getenv(var_name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------
USER_AGENT = os.getenv(
    "NEWS_READER_USER_AGENT",
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
)
THIRD_PARTY_USER_AGENT = os.getenv(
    "NEWS_READER_THIRD_PARTY_USER_AGENT",
    "Mozilla/5.0 (compatible; RSS Reader/1.0)",
)
ACCEPT_HEADER = "application/rss+xml, application/xml, text/xml, application/atom+xml, text/html"
REQUEST_TIMEOUT_SECONDS = float(os.getenv("NEWS_READER_TIMEOUT_SECONDS", "15"))
THIRD_PARTY_TIMEOUT_SECONDS = float(os.getenv("NEWS_READER_THIRD_PARTY_TIMEOUT_SECONDS", "15"))
THIRD_PARTY_API_URL = os.getenv(
    "NEWS_READER_THIRD_PARTY_API_URL",
    "https://api.rss2json.com/v1/api.json",
)
ENABLE_THIRD_PARTY = _env_bool("NEWS_READER_ENABLE_THIRD_PARTY", True)

# ---------------------------------------------------------------------------
# Storage / caching
# ---------------------------------------------------------------------------
DB_PATH = os.getenv("NEWS_READER_DB_PATH", "news_reader.db")
CACHE_TTL_SECONDS = int(os.getenv("NEWS_READER_CACHE_TTL_SECONDS", str(60 * 5)))
STATUS_TTL_SECONDS = int(os.getenv("NEWS_READER_STATUS_TTL_SECONDS", str(60 * 60 * 24)))
LATEST_ARTICLES_LIMIT = int(os.getenv("NEWS_READER_LATEST_LIMIT", "20"))
DEFAULT_PAGE_SIZE = int(os.getenv("NEWS_READER_PAGE_SIZE", "10"))

# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------
FETCH_INTERVAL_MINUTES = int(os.getenv("NEWS_READER_INTERVAL_MINUTES", "30"))
INITIAL_DELAY_SECONDS = float(os.getenv("NEWS_READER_INITIAL_DELAY_SECONDS", "5"))
RETRY_DELAY_SECONDS = float(os.getenv("NEWS_READER_RETRY_DELAY_SECONDS", "60"))
MAX_RETRIES = int(os.getenv("NEWS_READER_MAX_RETRIES", "3"))
MIN_FETCH_INTERVAL_SECONDS = float(os.getenv("NEWS_READER_MIN_FETCH_INTERVAL_SECONDS", "60"))

LOG_LEVEL = os.getenv("NEWS_READER_LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Row limits
# ---------------------------------------------------------------------------
MAX_ID_LENGTH = 250
MAX_TITLE_LENGTH = 500
MAX_DESCRIPTION_LENGTH = 5_000
MAX_CONTENT_LENGTH = 100_000
MAX_LINK_LENGTH = 2_000
MAX_SOURCE_LENGTH = 100

# ---------------------------------------------------------------------------
# Placeholder text
# ---------------------------------------------------------------------------
UNTITLED = "无标题"
NO_DESCRIPTION = "无描述"
UNKNOWN_SOURCE = "未知来源"
UNKNOWN_ARTICLE = "未知文章"
SYSTEM_SOURCE = "系统消息"
