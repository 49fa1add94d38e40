"""
models.py - news_reader
Data models shared by the ingestion pipeline, storage and CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class NewsItem:
    """
    Normalized article record.  Every ingestion path (direct feed, third-party
    parser, static fallback, offline placeholder) must produce this shape.
    """
    id: str
    title: str
    description: str
    link: str
    pub_date: str
    source: str
    content: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "content": self.content,
            "link": self.link,
            "pubDate": self.pub_date,
            "source": self.source,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "NewsItem":
        return cls(
            id=row.get("id", ""),
            title=row.get("title", ""),
            description=row.get("description") or "",
            content=row.get("content") or "",
            link=row.get("link", ""),
            pub_date=row.get("pub_date", ""),
            source=row.get("source", ""),
        )


@dataclass
class Highlight:
    id: str
    article_id: str
    text: str
    comment: Optional[str] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "articleId": self.article_id,
            "text": self.text,
            "comment": self.comment,
            "createdAt": self.created_at,
        }


@dataclass
class Comment:
    id: str
    article_id: str
    content: str
    user_name: str
    user_id: Optional[str] = None
    created_at: Optional[str] = None
    article_title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "articleId": self.article_id,
            "content": self.content,
            "userId": self.user_id,
            "userName": self.user_name,
            "createdAt": self.created_at,
        }
        if self.article_title is not None:
            d["articleTitle"] = self.article_title
        return d


@dataclass
class Article(NewsItem):
    """A stored NewsItem together with its highlights and comments (newest first)."""
    highlights: List[Highlight] = field(default_factory=list)
    comments: List[Comment] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["highlights"] = [h.to_dict() for h in self.highlights]
        d["comments"] = [c.to_dict() for c in self.comments]
        return d


@dataclass
class ArticlePage:
    items: List[NewsItem]
    total: int
    has_more: bool
    page: int = 1
    page_size: int = 10

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "hasMore": self.has_more,
        }


@dataclass(frozen=True)
class SourceConfig:
    """Static feed definition, immutable for the lifetime of the process."""
    name: str                                   # display label used in NewsItem.source
    url: str
    fallback_url: str = ""
    alternate_urls: Tuple[str, ...] = ()
    static_items: Tuple[Dict[str, str], ...] = ()   # hand-authored last-resort content

    def urls(self) -> List[str]:
        """Primary, fallback, then alternates; empty entries dropped."""
        return [u for u in (self.url, self.fallback_url, *self.alternate_urls) if u]


# ---------------------------------------------------------------------------
# Fetch outcomes
# ---------------------------------------------------------------------------

@dataclass
class FetchSuccess:
    body: str
    url: str
    errors: List[str] = field(default_factory=list)   # failed attempts before `url`


@dataclass
class FetchFailure:
    errors: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Run outcomes
# ---------------------------------------------------------------------------

TIER_DIRECT = "direct"
TIER_THIRD_PARTY = "third_party"
TIER_STATIC = "static"
TIER_FAILED = "failed"


@dataclass
class SourceOutcome:
    """Result of one source's fallback chain within a run."""
    source: str
    tier: str
    items: List[NewsItem] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.tier != TIER_FAILED


@dataclass
class IngestionResult:
    saved_count: int = 0
    processed_count: int = 0
    errors: List[str] = field(default_factory=list)
    # True when no source produced items from any tier; placeholders may still be saved
    all_sources_failed: bool = False

    def to_summary(self) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "count": self.saved_count,
            "processed": self.processed_count,
        }
        if self.errors:
            summary["errors"] = list(self.errors)
        return summary
