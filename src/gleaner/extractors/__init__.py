"""Source extractors: fan-in to the canonical Item model."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from gleaner.config import CrawlConfig
from gleaner.errors import ConfigError
from gleaner.extractors.base import Extractor
from gleaner.fetch import Fetcher
from gleaner.models import SourceKind
from gleaner.ratelimit import RateLimiter


def create_extractor(
    kind: SourceKind | str,
    *,
    config: CrawlConfig,
    fetcher: Fetcher,
    limiter: RateLimiter,
    now: Callable[[], datetime] | None = None,
) -> Extractor:
    """Create the extractor for a source kind.

    Raises:
        ConfigError: If the kind is unknown.
    """
    from gleaner.extractors.geeknews import GeekNewsExtractor
    from gleaner.extractors.hackernews import HackerNewsExtractor
    from gleaner.extractors.jsonld import JsonLdEventExtractor
    from gleaner.extractors.onoffmix import OnOffMixExtractor
    from gleaner.extractors.reddit import RedditExtractor
    from gleaner.extractors.rss import RSSExtractor

    extractors: dict[SourceKind, type[Extractor]] = {
        SourceKind.ONOFFMIX: OnOffMixExtractor,
        SourceKind.JSONLD: JsonLdEventExtractor,
        SourceKind.RSS: RSSExtractor,
        SourceKind.HACKERNEWS: HackerNewsExtractor,
        SourceKind.REDDIT: RedditExtractor,
        SourceKind.GEEKNEWS: GeekNewsExtractor,
    }

    try:
        kind = SourceKind(kind)
    except ValueError as exc:
        raise ConfigError(f"Unknown source kind: {kind!r}") from exc

    return extractors[kind](config=config, fetcher=fetcher, limiter=limiter, now=now)


__all__ = ["Extractor", "create_extractor"]
