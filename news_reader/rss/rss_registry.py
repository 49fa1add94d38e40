"""
rss/rss_registry.py - news_reader

Feed definitions, the static fallback content for 虎嗅, and the generic
offline placeholders persisted when every source fails in a run.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from news_reader import config
from news_reader.models import NewsItem, SourceConfig
from news_reader.utils import now_iso

HUXIU_FALLBACK: Tuple[Dict[str, str], ...] = (
    {
        "id": "huxiu_fallback_1",
        "title": "科技创新如何改变我们的生活",
        "description": "探讨最新科技趋势对日常生活的影响",
        "content": "随着人工智能、区块链和物联网等技术的发展，我们的生活方式正在发生翻天覆地的变化...",
        "link": "https://www.huxiu.com",
    },
    {
        "id": "huxiu_fallback_2",
        "title": "数字经济时代的商业变革",
        "description": "分析数字化转型对企业发展的重要性",
        "content": "在数字经济时代，企业必须适应新的商业模式和运营方式...",
        "link": "https://www.huxiu.com",
    },
)

OFFLINE_PLACEHOLDERS: Tuple[Dict[str, str], ...] = (
    {
        "id": "fallback-1",
        "title": "无法获取最新内容 - 请稍后再试",
        "description": "当前无法连接到 RSS 源，这是一条占位内容。我们正在尝试恢复连接，请稍后刷新页面。",
        "content": "当前无法连接到 RSS 源，这是一条占位内容。我们正在尝试恢复连接，请稍后刷新页面。",
        "link": "#",
    },
    {
        "id": "fallback-2",
        "title": "网络连接问题",
        "description": "可能是由于网络连接问题导致无法获取最新内容。您可以检查网络连接或稍后再试。",
        "content": "可能是由于网络连接问题导致无法获取最新内容。您可以检查网络连接或稍后再试。",
        "link": "#",
    },
)

RSS_SOURCES: Tuple[SourceConfig, ...] = (
    SourceConfig(
        name="虎嗅",
        url="https://www.huxiu.com/rss/",
        fallback_url="https://rsshub.app/huxiu/article",
        alternate_urls=(
            "https://feedx.net/rss/huxiu.xml",
            "https://rsshub.app/huxiu/article",
            "https://rsshub.app/huxiu/tag/103",         # tech tag
            "https://rsshub.app/huxiu/collection/38",   # 24h trending
        ),
        static_items=HUXIU_FALLBACK,
    ),
    SourceConfig(
        name="36氪",
        url="https://36kr.com/feed",
        fallback_url="https://rsshub.app/36kr/news/latest",
        alternate_urls=(
            "https://feedx.net/rss/36kr.xml",
            "https://rsshub.app/36kr/news/latest",
        ),
    ),
)


def build_items(templates: Sequence[Dict[str, str]], source_name: str) -> List[NewsItem]:
    """Materialise hand-authored items, stamping pub_date at use time."""
    stamp = now_iso()
    return [
        NewsItem(
            id=t["id"],
            title=t["title"],
            description=t["description"],
            content=t.get("content", ""),
            link=t.get("link", "#"),
            pub_date=stamp,
            source=source_name,
        )
        for t in templates
    ]


def offline_placeholders() -> List[NewsItem]:
    return build_items(OFFLINE_PLACEHOLDERS, config.SYSTEM_SOURCE)
