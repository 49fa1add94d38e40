"""
CLI entrypoint for the news reader.

Usage:
    python -m news_reader.main --run-once          # one ingestion pass, then exit
    python -m news_reader.main                     # scheduler mode (every 30 min)
    python -m news_reader.main --list-articles 10
    python -m news_reader.main --page 2 --page-size 10
    python -m news_reader.main --search 人工智能
    python -m news_reader.main --show article_36_1a2b3c
    python -m news_reader.main --comment article_36_1a2b3c "好文章" --user-name alice
    python -m news_reader.main --highlight article_36_1a2b3c "关键段落" --note "值得再读"
    python -m news_reader.main --my-comments 10
    python -m news_reader.main --status
"""

from __future__ import annotations

import argparse
import logging
import signal
import sqlite3
import sys
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from news_reader import config
from news_reader.feed import NewsFeed
from news_reader.models import Comment, Highlight, NewsItem
from news_reader.router import IngestionRouter
from news_reader.rss.rss_registry import RSS_SOURCES
from news_reader.scheduler import IngestionScheduler
from news_reader.storage import SQLiteNewsStorage
from news_reader.utils import clean_html_strict, format_date, generate_id, truncate_text

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False, log_level: str = config.LOG_LEVEL) -> None:
    level = logging.DEBUG if verbose else getattr(logging, str(log_level).upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%H:%M:%S")
    handler.setFormatter(fmt)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def _print_summary(summary: dict) -> None:
    sep = "=" * 60
    print(f"\n{sep}")
    print("  NEWS READER -- INGESTION SUMMARY")
    print(f"  {datetime.now(tz=timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}")
    print(sep)
    print(f"  Processed        : {summary.get('processed', 0):>6} item(s)")
    print(f"  Saved            : {summary.get('count', 0):>6} item(s)")
    errors = summary.get("errors") or []
    if errors:
        print(f"  {'-'*50}")
        print(f"  Errors           : {len(errors):>6}")
        for err in errors:
            print(f"    - {truncate_text(err, 100)}")
    print(f"{sep}\n")


def _print_articles(heading: str, articles: Sequence[NewsItem]) -> None:
    if not articles:
        print("\nNo articles found.\n")
        return

    sep = "-" * 78
    print(f"\n{sep}")
    print(f"  {heading}")
    print(sep)
    for art in articles:
        print(f"  {format_date(art.pub_date):<12}  [{art.source}]  {art.id}")
        print(f"    {truncate_text(art.title, 72)}")
        if art.description:
            print(f"    {truncate_text(clean_html_strict(art.description), 72)}")
        print()
    print(sep + "\n")


# ---------------------------------------------------------------------------
# Sub-commands
# ---------------------------------------------------------------------------

def _cmd_run_once(storage: SQLiteNewsStorage) -> dict:
    summary = IngestionRouter(storage).run().to_summary()
    _print_summary(summary)
    return summary


def _cmd_list_articles(storage: SQLiteNewsStorage, limit: int) -> None:
    feed = NewsFeed(storage, limit=limit)
    articles = feed.fetch_news()
    _print_articles(f"Latest {len(articles)} article(s)", articles)


def _cmd_page(storage: SQLiteNewsStorage, page: int, page_size: int) -> None:
    result = storage.get_articles_page(page, page_size)
    more = "more available" if result.has_more else "end of list"
    _print_articles(f"Page {result.page} ({len(result.items)} of {result.total}, {more})", result.items)


def _cmd_search(storage: SQLiteNewsStorage, query: str) -> None:
    articles = storage.search_articles(query)
    _print_articles(f"{len(articles)} result(s) for '{query}'", articles)


def _cmd_show(storage: SQLiteNewsStorage, article_id: str) -> int:
    article = storage.get_article_by_id(article_id)
    if article is None:
        print(f"\nArticle not found: {article_id}\n")
        return 1

    sep = "=" * 78
    print(f"\n{sep}")
    print(f"  {article.title}")
    print(f"  {article.source} | {format_date(article.pub_date)} | {article.link}")
    print(sep)
    body = clean_html_strict(article.content) or clean_html_strict(article.description)
    print(f"\n{body}\n")

    if article.highlights:
        print(f"  Highlights ({len(article.highlights)})")
        for h in article.highlights:
            note = f"  -- {h.comment}" if h.comment else ""
            print(f"    * {h.text}{note}")
        print()
    if article.comments:
        print(f"  Comments ({len(article.comments)})")
        for c in article.comments:
            print(f"    {c.user_name} ({format_date(c.created_at)}): {c.content}")
        print()
    print(sep + "\n")
    return 0


def _cmd_status(storage: SQLiteNewsStorage) -> None:
    status = storage.get_rss_status()
    sep = "=" * 50
    print(f"\n{sep}")
    print("  NEWS READER -- STATUS")
    print(sep)
    print(f"  {'Sources':<20}: {', '.join(s.name for s in RSS_SOURCES)}")
    print(f"  {'Articles stored':<20}: {storage.count_articles()}")
    print(f"  {'Last run':<20}: {status.get('lastRun') or 'never'}")
    print(f"  {'Last run saved':<20}: {status.get('count', 0)}")
    print(f"  {'Has errors':<20}: {'yes' if status.get('hasErrors') else 'no'}")
    for err in status.get("errors") or []:
        print(f"    - {truncate_text(err, 100)}")
    print(f"{sep}\n")


def _cmd_comment(storage: SQLiteNewsStorage, article_id: str, text: str, user_name: str) -> int:
    comment = Comment(
        id=generate_id("comment_"),
        article_id=article_id,
        content=text.strip(),
        user_name=user_name,
    )
    try:
        storage.save_comment(comment)
    except (ValueError, sqlite3.Error) as exc:
        print(f"\nComment rejected: {exc}\n")
        return 2
    print(f"\nComment saved: {comment.id}\n")
    return 0


def _cmd_highlight(storage: SQLiteNewsStorage, article_id: str, text: str, note: Optional[str] = None) -> int:
    highlight = Highlight(
        id=generate_id("highlight_"),
        article_id=article_id,
        text=text,
        comment=(note or "").strip() or None,
    )
    if not storage.save_highlight(highlight):
        print(f"\nHighlight not saved for article: {article_id}\n")
        return 1
    print(f"\nHighlight saved: {highlight.id}\n")
    return 0


def _cmd_my_comments(storage: SQLiteNewsStorage, limit: int) -> None:
    comments = storage.get_user_comments(limit)
    if not comments:
        print("\nNo comments yet.\n")
        return

    sep = "-" * 78
    print(f"\n{sep}")
    print(f"  Last {len(comments)} comment(s)")
    print(sep)
    for c in comments:
        title = truncate_text(c.article_title or config.UNKNOWN_ARTICLE, 50)
        print(f"  {format_date(c.created_at):<12}  {c.user_name} on {title}")
        print(f"    {c.content}")
        print(f"    ({c.article_id})")
        print()
    print(sep + "\n")


def _run_scheduler(storage: SQLiteNewsStorage, interval_minutes: int) -> int:
    router = IngestionRouter(storage)
    scheduler = IngestionScheduler(router.run, interval_minutes=interval_minutes)
    scheduler.start()

    stop = {"value": False}

    def _shutdown_handler(*_: object) -> None:
        stop["value"] = True

    signal.signal(signal.SIGINT, _shutdown_handler)
    signal.signal(signal.SIGTERM, _shutdown_handler)

    while not stop["value"]:
        time.sleep(0.5)

    scheduler.stop()
    logger.info("Scheduler stopped gracefully.")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="news-reader",
        description="Personal news reader: RSS ingestion, reading, highlights and comments",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--db-path", default=config.DB_PATH, help="SQLite file path for news storage")
    parser.add_argument("--run-once", action="store_true", help="Run one ingestion cycle then exit")
    parser.add_argument(
        "--interval-minutes",
        type=int,
        default=config.FETCH_INTERVAL_MINUTES,
        help="Scheduler interval in minutes (default: 30)",
    )
    parser.add_argument("--list-articles", metavar="N", nargs="?", const=config.LATEST_ARTICLES_LIMIT, type=int,
                        help="List the latest N articles (default 20)")
    parser.add_argument("--page", type=int, help="Show one page of articles, newest first")
    parser.add_argument("--page-size", type=int, default=config.DEFAULT_PAGE_SIZE,
                        help="Articles per page (default 10)")
    parser.add_argument("--search", metavar="QUERY", help="Search titles and descriptions")
    parser.add_argument("--show", metavar="ID", help="Show one article with its highlights and comments")
    parser.add_argument("--status", action="store_true", help="Print the last ingestion run status")
    parser.add_argument("--comment", nargs=2, metavar=("ID", "TEXT"), help="Add a comment to an article")
    parser.add_argument("--user-name", help="Display name for --comment")
    parser.add_argument("--highlight", nargs=2, metavar=("ID", "TEXT"), help="Highlight a passage of an article")
    parser.add_argument("--note", metavar="TEXT", help="Note attached to --highlight")
    parser.add_argument("--my-comments", metavar="N", nargs="?", const=20, type=int,
                        help="List the most recent N comments with their article titles (default 20)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug-level logging")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    args = parser.parse_args(argv)
    if args.comment and not args.user_name:
        parser.error("--comment requires --user-name")
    if args.note and not args.highlight:
        parser.error("--note requires --highlight")
    if args.page is not None and args.page < 1:
        parser.error("--page must be 1 or greater")
    if args.page_size < 1:
        parser.error("--page-size must be 1 or greater")
    return args


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    _setup_logging(args.verbose, args.log_level)

    storage = SQLiteNewsStorage(args.db_path)

    if args.run_once:
        _cmd_run_once(storage)
        return 0
    if args.list_articles is not None:
        _cmd_list_articles(storage, args.list_articles)
        return 0
    if args.page is not None:
        _cmd_page(storage, args.page, args.page_size)
        return 0
    if args.search is not None:
        _cmd_search(storage, args.search)
        return 0
    if args.show:
        return _cmd_show(storage, args.show)
    if args.status:
        _cmd_status(storage)
        return 0
    if args.comment:
        return _cmd_comment(storage, args.comment[0], args.comment[1], args.user_name)
    if args.highlight:
        return _cmd_highlight(storage, args.highlight[0], args.highlight[1], args.note)
    if args.my_comments is not None:
        _cmd_my_comments(storage, args.my_comments)
        return 0

    return _run_scheduler(storage, args.interval_minutes)


if __name__ == "__main__":
    raise SystemExit(main())
