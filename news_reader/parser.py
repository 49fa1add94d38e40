"""Regex-based RSS 2.0 / Atom item extraction."""

from __future__ import annotations

import logging
import re
from typing import List

from news_reader import config
from news_reader.models import NewsItem
from news_reader.utils import (
    clean_html,
    extract_link_from_atom,
    extract_tag,
    generate_safe_id,
    now_iso,
)

logger = logging.getLogger(__name__)

_ITEM_RE = re.compile(r"<item>([\s\S]*?)</item>")
_ENTRY_RE = re.compile(r"<entry>([\s\S]*?)</entry>")


def parse_items(xml_text: str, source_name: str) -> List[NewsItem]:
    """
    Extract NewsItems from a feed document.

    RSS <item> blocks are scanned first; Atom <entry> blocks only when no
    item matched.  Output keeps document order.  Malformed input yields an
    empty list, never an exception.
    """
    logger.debug("Parsing feed XML for %s", source_name)
    try:
        items = [_parse_rss_item(block, source_name) for block in _ITEM_RE.findall(xml_text)]

        if not items:
            logger.debug("No <item> tags found for %s, trying Atom <entry> tags", source_name)
            items = [_parse_atom_entry(block, source_name) for block in _ENTRY_RE.findall(xml_text)]

        logger.info("Parsed %d item(s) for %s", len(items), source_name)
        return items
    except Exception as exc:
        logger.error("Error parsing feed for %s: %s", source_name, exc)
        return []


def _parse_rss_item(block: str, source_name: str) -> NewsItem:
    title = extract_tag(block, "title") or config.UNTITLED
    link = extract_tag(block, "link") or ""
    description = (
        extract_tag(block, "description")
        or extract_tag(block, "summary")
        or config.NO_DESCRIPTION
    )
    content = extract_tag(block, "content:encoded") or extract_tag(block, "content") or ""
    pub_date = extract_tag(block, "pubDate") or extract_tag(block, "dc:date") or now_iso()
    guid = extract_tag(block, "guid") or link

    item = NewsItem(
        id=generate_safe_id(source_name, guid or link, title),
        title=title,
        description=clean_html(description),
        content=content,
        link=link,
        pub_date=pub_date,
        source=source_name,
    )
    logger.debug("Parsed item %s: %s", item.id, title[:60])
    return item


def _parse_atom_entry(block: str, source_name: str) -> NewsItem:
    title = extract_tag(block, "title") or config.UNTITLED
    link = extract_link_from_atom(block) or ""
    description = (
        extract_tag(block, "summary")
        or extract_tag(block, "content")
        or config.NO_DESCRIPTION
    )
    content = extract_tag(block, "content") or ""
    pub_date = extract_tag(block, "published") or extract_tag(block, "updated") or now_iso()
    entry_id = extract_tag(block, "id") or link

    item = NewsItem(
        id=generate_safe_id(source_name, entry_id or link, title),
        title=title,
        description=clean_html(description),
        content=content,
        link=link,
        pub_date=pub_date,
        source=source_name,
    )
    logger.debug("Parsed entry %s: %s", item.id, title[:60])
    return item
