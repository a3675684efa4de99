"""Crawl orchestration: run every source, isolate failures, merge, filter, sort."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from gleaner.config import CrawlConfig
from gleaner.extractors import create_extractor
from gleaner.fetch import Fetcher
from gleaner.merge import filter_recent, local_midnight, merge_items, sort_items
from gleaner.models import CrawlOutcome, CrawlRequest, Item, SourceErrorRecord
from gleaner.ratelimit import RateLimiter

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """Runs the sources of a CrawlRequest one after another.

    A failing source becomes a :class:`SourceErrorRecord`; the other
    sources still run and ``run()`` itself never raises for them.
    """

    def __init__(self, config: CrawlConfig, fetcher: Fetcher, limiter: RateLimiter) -> None:
        self._config = config
        self._fetcher = fetcher
        self._limiter = limiter

    def run(
        self,
        request: CrawlRequest,
        *,
        existing: Iterable[Item] = (),
        now: datetime | None = None,
        include_past: bool = False,
    ) -> CrawlOutcome:
        """Crawl all active sources and merge the result into ``existing``.

        Args:
            request: Sources, processed in the given order.
            existing: Previously stored items to merge against.
            now: Reference instant for the recency cutoff (default: now).
            include_past: Keep items that started before today.

        Returns:
            Merged, filtered and sorted items plus per-source errors.
        """
        now = now or datetime.now(tz=UTC)
        incoming: list[Item] = []
        errors: list[SourceErrorRecord] = []
        processed = 0

        for source in request.sources:
            if not source.is_active:
                logger.debug("Skipping inactive source %s", source.id)
                continue
            processed += 1
            try:
                extractor = create_extractor(
                    source.kind,
                    config=self._config,
                    fetcher=self._fetcher,
                    limiter=self._limiter,
                    now=lambda: now,
                )
                items = extractor.crawl(source)
            except Exception as exc:
                logger.warning("Source %s failed: %s", source.id, exc, exc_info=True)
                message = str(exc) or type(exc).__name__
                errors.append(SourceErrorRecord(source_id=source.id, message=message))
                continue

            incoming.extend(items)
            self._limiter.delay("source", self._config.inter_source_delay)

        merged = merge_items(existing, incoming)
        filtered_out = 0
        if not include_past:
            cutoff = local_midnight(now, self._config.source_utc_offset)
            merged, filtered_out = filter_recent(merged, cutoff)

        logger.info(
            "Crawled %d sources: %d new items, %d kept, %d filtered, %d errors",
            processed,
            len(incoming),
            len(merged),
            filtered_out,
            len(errors),
        )
        return CrawlOutcome(
            items=sort_items(merged),
            errors=errors,
            filtered_out=filtered_out,
            sources_processed=processed,
        )
