"""
News Reader - RSS ingestion with tiered fallback, SQLite storage, and
highlights/comments on stored articles.

Main exports:
    IngestionRouter: Runs every source through its fallback chain
    IngestionScheduler: Periodic ingestion with bounded retry
    SQLiteNewsStorage: Articles, highlights, comments and cache
    NewsFeed: Latest articles behind an in-memory cache
"""

from .feed import MemoryCache, NewsFeed
from .models import Article, Comment, Highlight, IngestionResult, NewsItem
from .router import IngestionRouter, fetch_and_store_rss
from .scheduler import IngestionScheduler
from .storage import SQLiteNewsStorage, get_default_storage

__version__ = "1.0.0"
__all__ = [
    'Article',
    'Comment',
    'Highlight',
    'IngestionResult',
    'IngestionRouter',
    'IngestionScheduler',
    'MemoryCache',
    'NewsFeed',
    'NewsItem',
    'SQLiteNewsStorage',
    'fetch_and_store_rss',
    'get_default_storage',
]
