"""SQLite storage for articles, highlights, comments and the key/value cache."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from news_reader import config
from news_reader.models import Article, ArticlePage, Comment, Highlight, NewsItem
from news_reader.utils import (
    generate_id,
    generate_safe_id,
    is_valid_id,
    normalize_datetime,
    now_iso,
    to_iso,
    truncate_string,
)

logger = logging.getLogger(__name__)

RSS_STATUS_KEY = "rss-status"

_UNSAFE_ID_CHARS_RE = re.compile(r"[^A-Za-z0-9_-]")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS articles (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    description TEXT,
    content     TEXT,
    link        TEXT NOT NULL,
    pub_date    TEXT NOT NULL,
    source      TEXT NOT NULL,
    created_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_articles_pub_date ON articles(pub_date DESC);
CREATE INDEX IF NOT EXISTS idx_articles_source   ON articles(source);

CREATE TABLE IF NOT EXISTS highlights (
    id         TEXT PRIMARY KEY,
    article_id TEXT NOT NULL,
    text       TEXT NOT NULL,
    comment    TEXT,
    created_at TEXT NOT NULL,
    FOREIGN KEY (article_id) REFERENCES articles(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_highlights_article ON highlights(article_id);

CREATE TABLE IF NOT EXISTS comments (
    id         TEXT PRIMARY KEY,
    article_id TEXT NOT NULL,
    content    TEXT NOT NULL,
    user_id    TEXT,
    user_name  TEXT NOT NULL,
    created_at TEXT NOT NULL,
    FOREIGN KEY (article_id) REFERENCES articles(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_comments_article ON comments(article_id);

CREATE TABLE IF NOT EXISTS cache (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL,
    expires_at TEXT
);
"""


def _safe_article_id(article_id: str) -> str:
    return _UNSAFE_ID_CHARS_RE.sub("", article_id or "")


def sanitize_article(item: NewsItem) -> NewsItem:
    """
    Apply column limits and defaults.  A missing, over-long or non
    [A-Za-z0-9_-] id is regenerated from (source, link, title).
    """
    safe = NewsItem(
        id=item.id,
        title=truncate_string(item.title or config.UNTITLED, config.MAX_TITLE_LENGTH),
        description=truncate_string(item.description or "", config.MAX_DESCRIPTION_LENGTH),
        content=truncate_string(item.content or "", config.MAX_CONTENT_LENGTH),
        link=truncate_string(item.link or "#", config.MAX_LINK_LENGTH),
        pub_date=normalize_datetime(item.pub_date),
        source=truncate_string(item.source or config.UNKNOWN_SOURCE, config.MAX_SOURCE_LENGTH),
    )
    if not safe.id or len(safe.id) > config.MAX_ID_LENGTH or not is_valid_id(safe.id):
        safe.id = generate_safe_id(safe.source, safe.link, safe.title)
    return safe


class SQLiteNewsStorage:
    """
    SQLite-backed store.

    The schema is created once, by the constructor, under a lock; calling
    ensure_schema() again is a no-op.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self.db_path = Path(db_path or config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._schema_lock = threading.Lock()
        self._schema_ready = False
        self.ensure_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        with self._schema_lock:
            if self._schema_ready:
                logger.debug("Schema already initialized, skipping")
                return
            with self._connect() as conn:
                conn.executescript(_SCHEMA)
            self._schema_ready = True
        logger.info("news_reader DB ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Articles
    # ------------------------------------------------------------------

    def upsert_article(self, item: NewsItem) -> bool:
        """
        Insert or overwrite the row keyed by item id.  Returns False on
        failure instead of raising.
        """
        try:
            safe = sanitize_article(item)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO articles
                        (id, title, description, content, link, pub_date, source, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE
                    SET title = excluded.title,
                        description = excluded.description,
                        content = excluded.content,
                        link = excluded.link,
                        pub_date = excluded.pub_date,
                        source = excluded.source
                    """,
                    (
                        safe.id,
                        safe.title,
                        safe.description,
                        safe.content,
                        safe.link,
                        safe.pub_date,
                        safe.source,
                        now_iso(),
                    ),
                )
            logger.debug("Saved [%s] %s: %s", safe.source, safe.id, safe.title[:60])
            return True
        except Exception as exc:
            logger.error("Error saving article %s: %s", getattr(item, "id", "?"), exc)
            return False

    def get_article_by_id(self, article_id: str) -> Optional[Article]:
        if not article_id or len(article_id) > 255:
            logger.warning("Invalid article ID: %s", article_id)
            return None

        safe_id = _safe_article_id(article_id)
        if safe_id != article_id:
            logger.warning("Article ID was sanitized: %s -> %s", article_id, safe_id)
            if not safe_id:
                return None

        with self._connect() as conn:
            row = conn.execute("SELECT * FROM articles WHERE id = ?", (safe_id,)).fetchone()
        if row is None:
            logger.debug("Article not found: %s", safe_id)
            return None

        item = NewsItem.from_row(dict(row))
        return Article(
            id=item.id,
            title=item.title,
            description=item.description,
            content=item.content,
            link=item.link,
            pub_date=item.pub_date,
            source=item.source,
            highlights=self.get_highlights_by_article_id(safe_id),
            comments=self.get_comments_by_article_id(safe_id),
        )

    def get_latest_articles(self, limit: int = config.LATEST_ARTICLES_LIMIT) -> List[NewsItem]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM articles ORDER BY pub_date DESC LIMIT ?", (limit,)
            ).fetchall()
        return [NewsItem.from_row(dict(r)) for r in rows]

    def get_articles_page(self, page: int = 1, page_size: int = config.DEFAULT_PAGE_SIZE) -> ArticlePage:
        page = max(1, int(page))
        page_size = max(1, int(page_size))
        offset = (page - 1) * page_size
        with self._connect() as conn:
            total = conn.execute("SELECT COUNT(*) FROM articles").fetchone()[0]
            rows = conn.execute(
                "SELECT * FROM articles ORDER BY pub_date DESC LIMIT ? OFFSET ?",
                (page_size, offset),
            ).fetchall()
        items = [NewsItem.from_row(dict(r)) for r in rows]
        logger.debug("Retrieved %d article(s) for page %d", len(items), page)
        return ArticlePage(
            items=items,
            total=total,
            has_more=offset + len(items) < total,
            page=page,
            page_size=page_size,
        )

    def search_articles(self, query: str, limit: int = config.LATEST_ARTICLES_LIMIT) -> List[NewsItem]:
        """Case-insensitive substring match on title and description, newest first."""
        term = (query or "").strip()
        if not term:
            return []
        pattern = "%" + term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM articles
                WHERE title LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\'
                ORDER BY pub_date DESC
                LIMIT ?
                """,
                (pattern, pattern, limit),
            ).fetchall()
        return [NewsItem.from_row(dict(r)) for r in rows]

    def count_articles(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM articles").fetchone()[0]

    # ------------------------------------------------------------------
    # Highlights
    # ------------------------------------------------------------------

    def save_highlight(self, highlight: Highlight) -> bool:
        safe_article_id = _safe_article_id(highlight.article_id)
        if not safe_article_id:
            logger.error("Invalid article ID for highlight: %s", highlight.id)
            return False
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO highlights (id, article_id, text, comment, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        highlight.id or generate_id("highlight_"),
                        safe_article_id,
                        highlight.text,
                        highlight.comment or None,
                        highlight.created_at or now_iso(),
                    ),
                )
            logger.debug("Highlight saved: %s", highlight.id)
            return True
        except sqlite3.Error as exc:
            logger.error("Error saving highlight %s: %s", highlight.id, exc)
            return False

    def get_highlights_by_article_id(self, article_id: str) -> List[Highlight]:
        safe_article_id = _safe_article_id(article_id)
        if not safe_article_id:
            logger.error("Invalid article ID for getting highlights: %s", article_id)
            return []
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM highlights WHERE article_id = ? ORDER BY created_at DESC",
                (safe_article_id,),
            ).fetchall()
        return [
            Highlight(
                id=r["id"],
                article_id=r["article_id"],
                text=r["text"],
                comment=r["comment"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def save_comment(self, comment: Comment) -> None:
        """Persist a comment.  Unlike other writes, failures propagate."""
        safe_article_id = _safe_article_id(comment.article_id)
        if not safe_article_id:
            raise ValueError(f"Invalid article ID for comment: {comment.id}")
        if not comment.content:
            raise ValueError("Comment content is required")
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO comments (id, article_id, content, user_id, user_name, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        comment.id or generate_id("comment_"),
                        safe_article_id,
                        comment.content,
                        comment.user_id or None,
                        comment.user_name,
                        comment.created_at or now_iso(),
                    ),
                )
        except sqlite3.Error as exc:
            logger.error("Error saving comment %s: %s", comment.id, exc)
            raise
        logger.info("Comment saved: %s", comment.id)

    def get_comments_by_article_id(self, article_id: str) -> List[Comment]:
        safe_article_id = _safe_article_id(article_id)
        if not safe_article_id:
            logger.error("Invalid article ID for getting comments: %s", article_id)
            return []
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM comments WHERE article_id = ? ORDER BY created_at DESC",
                (safe_article_id,),
            ).fetchall()
        return [
            Comment(
                id=r["id"],
                article_id=r["article_id"],
                content=r["content"],
                user_id=r["user_id"],
                user_name=r["user_name"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    def get_user_comments(self, limit: int = 20) -> List[Comment]:
        """Most recent comments across all articles, with the article title."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT c.*, a.title AS article_title
                FROM comments c
                LEFT JOIN articles a ON c.article_id = a.id
                ORDER BY c.created_at DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [
            Comment(
                id=r["id"],
                article_id=r["article_id"],
                content=r["content"],
                user_id=r["user_id"],
                user_name=r["user_name"],
                created_at=r["created_at"],
                article_title=r["article_title"] or config.UNKNOWN_ARTICLE,
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Cache
    # ------------------------------------------------------------------

    def get_cache(self, key: str) -> Any:
        """Return the cached value, or None when missing, expired or unreadable."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT value FROM cache WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                    (key, now_iso()),
                ).fetchone()
            if row is None:
                logger.debug("Cache miss for key: %s", key)
                return None
            logger.debug("Cache hit for key: %s", key)
            return json.loads(row["value"])
        except (sqlite3.Error, ValueError) as exc:
            logger.error("Error getting cache for key %s: %s", key, exc)
            return None

    def set_cache(self, key: str, value: Any, expiration_seconds: Optional[float] = None) -> None:
        expires_at = (
            to_iso(datetime.now(timezone.utc) + timedelta(seconds=expiration_seconds))
            if expiration_seconds
            else None
        )
        try:
            payload = json.dumps(value, ensure_ascii=False)
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO cache (key, value, expires_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE
                    SET value = excluded.value,
                        expires_at = excluded.expires_at
                    """,
                    (key, payload, expires_at),
                )
            logger.debug("Cache set for key: %s (ttl=%s)", key, expiration_seconds)
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Error setting cache for key %s: %s", key, exc)

    def purge_expired_cache(self) -> int:
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM cache WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (now_iso(),),
            )
            removed = cur.rowcount
        if removed:
            logger.info("Purged %d expired cache entr%s", removed, "y" if removed == 1 else "ies")
        return removed

    def get_rss_status(self) -> Dict[str, Any]:
        status = self.get_cache(RSS_STATUS_KEY)
        if not status:
            return {"hasErrors": False, "errors": [], "lastRun": None}
        return status


_DEFAULT_STORAGE: SQLiteNewsStorage | None = None


def get_default_storage(db_path: str | Path | None = None) -> SQLiteNewsStorage:
    global _DEFAULT_STORAGE
    if _DEFAULT_STORAGE is None or (db_path and Path(db_path) != _DEFAULT_STORAGE.db_path):
        _DEFAULT_STORAGE = SQLiteNewsStorage(db_path=db_path)
    return _DEFAULT_STORAGE
