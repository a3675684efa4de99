"""RSS/Atom feed extractor."""

from __future__ import annotations

import hashlib
import logging
from calendar import timegm

import feedparser

from gleaner.errors import RecordSkipped, SourceError
from gleaner.extractors.base import Extractor
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import strip_html, truncate, utc_iso_from_epoch

logger = logging.getLogger(__name__)

EXCERPT_LIMIT = 300


class RSSExtractor(Extractor):
    """Parses RSS and Atom feeds into Item objects."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.RSS

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        feed = feedparser.parse(raw_text)

        if feed.bozo and not feed.entries:
            raise SourceError(f"Feed error: {feed.bozo_exception}", source_id=source.id)

        entries = feed.entries[: self._config.max_index_items]
        return self.collect(entries, lambda entry: self._entry_to_item(source, entry))

    def _entry_to_item(self, source: SourceSpec, entry: feedparser.FeedParserDict) -> Item:
        """Convert a feedparser entry to an Item."""
        link = entry.get("link", "")
        title = entry.get("title", "")

        # Generate stable ID from entry id or link
        id_source = entry.get("id") or link
        if not id_source:
            raise RecordSkipped(f"feed entry without id or link: {title[:40]!r}")
        item_id = hashlib.sha256(id_source.encode()).hexdigest()[:16]

        tags = [t.get("term", "") for t in entry.get("tags", []) if t.get("term")]

        return self.build_item(
            source,
            local_id=item_id,
            title=strip_html(title),
            primary_timestamp=self._parse_date(entry) or self.now_iso(),
            description=truncate(self._extract_body(entry), EXCERPT_LIMIT),
            tags=tags,
            external_url=link,
            author=entry.get("author") or None,
        )

    @staticmethod
    def _extract_body(entry: feedparser.FeedParserDict) -> str:
        """Extract the best available body text from a feed entry."""
        summary = entry.get("summary", "")
        if summary:
            return strip_html(summary)

        content_list = entry.get("content", [])
        if content_list:
            best = max(content_list, key=lambda c: len(c.get("value", "")))
            return strip_html(best.get("value", ""))

        return ""

    @staticmethod
    def _parse_date(entry: feedparser.FeedParserDict) -> str | None:
        """Published (or updated) date as a UTC ISO string."""
        for field in ("published_parsed", "updated_parsed"):
            time_struct = entry.get(field)
            if time_struct:
                try:
                    return utc_iso_from_epoch(timegm(time_struct))
                except (ValueError, OverflowError):
                    continue
        return None
