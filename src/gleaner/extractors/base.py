"""Base class for source-specific extractors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from urllib.parse import urlsplit

from pydantic import ValidationError

from gleaner.config import CrawlConfig
from gleaner.errors import RecordSkipped
from gleaner.fetch import Fetcher, fetch_text
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import classify_category, format_instant, is_online
from gleaner.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class Extractor(ABC):
    """Base class for source-specific extractors.

    Each adapter implements ``extract()``, turning one fetched document
    into canonical :class:`Item` objects. A malformed candidate record is
    dropped on its own (:class:`RecordSkipped`); an exception escaping
    ``crawl()`` or ``extract()`` fails the whole source.
    """

    def __init__(
        self,
        *,
        config: CrawlConfig,
        fetcher: Fetcher,
        limiter: RateLimiter,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._config = config
        self._fetcher = fetcher
        self._limiter = limiter
        self._now = now or (lambda: datetime.now(tz=UTC))

    @property
    @abstractmethod
    def kind(self) -> SourceKind:
        """The source kind this extractor handles."""

    @abstractmethod
    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        """Parse a fetched document into items.

        Args:
            source: The source being crawled.
            raw_text: Body of ``source.endpoint``.

        Returns:
            Canonical items; malformed candidates are omitted.
        """

    def crawl(self, source: SourceSpec) -> list[Item]:
        """Fetch ``source.endpoint`` and extract its items."""
        raw_text = fetch_text(self._fetcher, source.endpoint)
        items = self.extract(source, raw_text)
        logger.info("Extracted %d items from %s", len(items), source.id)
        return items

    # -- helpers shared by adapters -------------------------------------

    @property
    def offset(self) -> str:
        return self._config.source_utc_offset

    def now_iso(self) -> str:
        return format_instant(self._now(), self.offset)

    def build_item(
        self,
        source: SourceSpec,
        *,
        local_id: str,
        title: str,
        primary_timestamp: str,
        tags: Iterable[str] = (),
        location: str | None = None,
        online: bool | None = None,
        **fields: object,
    ) -> Item:
        """Assemble an Item with id, category, tags and online-ness filled in.

        Raises:
            RecordSkipped: If required fields are missing or invalid.
        """
        if not local_id:
            raise RecordSkipped("missing source-local id")
        if not title or not title.strip():
            raise RecordSkipped(f"missing title for {local_id}")

        tag_list = [t for t in tags if t] or list(source.keywords)
        description = str(fields.get("description") or "")
        try:
            return Item(
                id=f"{self.kind.value}-{local_id}",
                source_id=source.id,
                kind=self.kind,
                title=title,
                primary_timestamp=primary_timestamp,
                location=location,
                is_online=is_online(location) if online is None else online,
                tags=tag_list,
                category=classify_category(f"{title} {description}", tag_list),
                crawled_at=self.now_iso(),
                **fields,
            )
        except ValidationError as exc:
            raise RecordSkipped(f"invalid record {local_id}: {exc.error_count()} errors") from exc

    def collect(self, candidates: Iterable[object], convert: Callable[..., Item]) -> list[Item]:
        """Convert candidates one by one, dropping the ones that fail."""
        items: list[Item] = []
        skipped = 0
        for candidate in candidates:
            try:
                items.append(convert(candidate))
            except (RecordSkipped, KeyError, TypeError, ValueError, AttributeError) as exc:
                skipped += 1
                logger.debug("Skipped record: %s", exc)
        if skipped:
            logger.debug("%s: skipped %d malformed records", self.kind.value, skipped)
        return items


def site_root(url: str) -> str:
    """``https://host/path?q`` → ``https://host``."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}" if parts.netloc else ""
