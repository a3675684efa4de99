"""OnOffMix event listing extractor (index page → detail pages)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import unquote

from bs4 import BeautifulSoup

from gleaner.errors import FetchError, RecordSkipped
from gleaner.extractors.base import Extractor, site_root
from gleaner.fetch import fetch_text
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import (
    DEFAULT_OFFSET,
    clean_text,
    format_instant,
    infer_cost,
    infer_location,
    normalize_timestamp,
    parse_local_datetime,
    truncate,
)

logger = logging.getLogger(__name__)

MAX_TAGS = 5
DESCRIPTION_LIMIT = 300

_EVENT_ID_RE = re.compile(r"/event/(\d+)")
_DATE_RANGE_RE = re.compile(
    r"(\d{4}\.\d{1,2}\.\d{1,2}\s*\([^)]+\)\s*\d{2}:\d{2})\s*~\s*"
    r"(\d{4}\.\d{1,2}\.\d{1,2}\s*\([^)]+\)\s*\d{2}:\d{2})"
)
_HASHTAG_RE = re.compile(r"[?&]s=%23([^&#]+)")
_CAPACITY_RE = re.compile(r"정원\s*(\d+)\s*명")


@dataclass
class EventDetail:
    """Fields scraped from one event detail page."""

    title: str
    starts_at: str
    ends_at: str | None = None
    location: str = ""
    description: str = ""
    cost_label: str = ""
    tags: list[str] = field(default_factory=list)
    capacity: str | None = None


def parse_event_ids(index_html: str, limit: int) -> list[str]:
    """Unique event ids linked from the index, in page order, capped at ``limit``."""
    soup = BeautifulSoup(index_html or "", "html.parser")
    ids: list[str] = []
    for link in soup.find_all("a", href=True):
        match = _EVENT_ID_RE.search(link["href"])
        if match and match.group(1) not in ids:
            ids.append(match.group(1))
            if len(ids) >= limit:
                break
    return ids


def _meta_content(soup: BeautifulSoup, *selectors: str) -> str:
    for selector in selectors:
        tag = soup.select_one(selector)
        if tag and tag.get("content", "").strip():
            return clean_text(tag["content"])
    return ""


def _visible_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup.get_text(" ", strip=True)


def parse_event_detail(
    html: str, *, offset: str = DEFAULT_OFFSET, now: datetime
) -> EventDetail | None:
    """Scrape an event detail page. Returns None when there is no title."""
    soup = BeautifulSoup(html or "", "html.parser")

    title = _meta_content(soup, "meta[property='og:title']")
    if not title:
        heading = soup.find("h1")
        title = clean_text(heading.get_text(" ", strip=True)) if heading else ""
    if not title:
        return None

    description = truncate(
        _meta_content(soup, "meta[property='og:description']", "meta[name='description']"),
        DESCRIPTION_LIMIT,
    )
    date_node = soup.select_one(".txt_date")
    date_text = date_node.get_text(" ", strip=True) if date_node else ""
    place_node = soup.select_one(".place_info span")
    place = place_node.get_text(" ", strip=True) if place_node else None
    tags = _parse_hashtags(soup)

    # Markers, prices and dates are only read from text a visitor would see.
    text = _visible_text(soup)
    starts_at, ends_at = _parse_dates(date_text, text, offset, now)
    capacity_match = _CAPACITY_RE.search(text)

    return EventDetail(
        title=title,
        starts_at=starts_at,
        ends_at=ends_at,
        location=infer_location(text, place=place),
        description=description,
        cost_label=infer_cost(text),
        tags=tags,
        capacity=f"{capacity_match.group(1)}명" if capacity_match else None,
    )


def _parse_dates(
    date_text: str, page_text: str, offset: str, now: datetime
) -> tuple[str, str | None]:
    if date_text:
        parts = [part.strip() for part in date_text.split("~")]
        start = normalize_timestamp(parts[0], offset, now=now)
        end = parse_local_datetime(parts[1], offset) if len(parts) > 1 and parts[1] else None
        return start, end

    range_match = _DATE_RANGE_RE.search(page_text)
    if range_match:
        start = normalize_timestamp(range_match.group(1), offset, now=now)
        return start, parse_local_datetime(range_match.group(2), offset)

    return format_instant(now, offset), None


def _parse_hashtags(soup: BeautifulSoup) -> list[str]:
    tags: list[str] = []
    for link in soup.find_all("a", href=True):
        match = _HASHTAG_RE.search(link["href"])
        if not match:
            continue
        try:
            tag = unquote(match.group(1), errors="strict").strip()
        except UnicodeDecodeError:
            continue
        if tag and tag not in tags:
            tags.append(tag)
        if len(tags) >= MAX_TAGS:
            break
    return tags


class OnOffMixExtractor(Extractor):
    """Crawls an OnOffMix listing page and the event pages it links to."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.ONOFFMIX

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        event_ids = parse_event_ids(raw_text, self._config.max_detail_fetches)
        logger.info("Found %d events on %s", len(event_ids), source.id)

        root = site_root(source.endpoint) or "https://onoffmix.com"
        pages: list[tuple[str, str]] = []
        for position, event_id in enumerate(event_ids):
            if position:
                self._limiter.delay("detail", self._config.detail_fetch_delay)
            url = f"{root}/event/{event_id}"
            try:
                pages.append((event_id, fetch_text(self._fetcher, url)))
            except FetchError as exc:
                logger.warning("Detail fetch failed for %s: %s", url, exc)

        return self.collect(pages, lambda page: self._to_item(source, root, *page))

    def _to_item(self, source: SourceSpec, root: str, event_id: str, html: str) -> Item:
        detail = parse_event_detail(html, offset=self.offset, now=self._now())
        if detail is None:
            raise RecordSkipped(f"onoffmix event {event_id} has no title")
        return self.build_item(
            source,
            local_id=event_id,
            title=detail.title,
            primary_timestamp=detail.starts_at,
            secondary_timestamp=detail.ends_at,
            location=detail.location,
            description=detail.description,
            cost_label=detail.cost_label,
            tags=detail.tags,
            capacity=detail.capacity,
            external_url=f"{root}/event/{event_id}",
        )
