"""Hacker News extractor (Firebase API: id list → item JSON)."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from gleaner.errors import FetchError, RecordSkipped, SourceError
from gleaner.extractors.base import Extractor
from gleaner.fetch import fetch_json
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import utc_iso_from_epoch

logger = logging.getLogger(__name__)


def item_url(endpoint: str, story_id: int | str) -> str:
    """``.../v0/topstories.json`` → ``.../v0/item/<id>.json``."""
    base = endpoint.rsplit("/", 1)[0]
    return f"{base}/item/{story_id}.json"


class HackerNewsExtractor(Extractor):
    """Top stories, fetched in small parallel batches."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.HACKERNEWS

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        try:
            story_ids = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise SourceError(f"Invalid id list: {exc}", source_id=source.id) from exc
        if not isinstance(story_ids, list):
            raise SourceError("Expected a JSON array of story ids", source_id=source.id)

        stories = self._fetch_stories(source, story_ids[: self._config.max_index_items])
        return self.collect(stories, lambda story: self._to_item(source, story))

    def _fetch_stories(self, source: SourceSpec, story_ids: list[Any]) -> list[dict[str, Any]]:
        batch_size = max(1, self._config.detail_batch_size)
        stories: list[dict[str, Any]] = []

        with ThreadPoolExecutor(max_workers=batch_size) as pool:
            for start in range(0, len(story_ids), batch_size):
                if start:
                    self._limiter.pause("hn-batch", self._config.batch_delay)
                batch = story_ids[start : start + batch_size]
                urls = [item_url(source.endpoint, story_id) for story_id in batch]
                for story in pool.map(self._fetch_one, urls):
                    if isinstance(story, dict):
                        stories.append(story)

        return stories

    def _fetch_one(self, url: str) -> Any:
        try:
            return fetch_json(self._fetcher, url)
        except FetchError as exc:
            logger.warning("Story fetch failed for %s: %s", url, exc)
            return None

    def _to_item(self, source: SourceSpec, story: dict[str, Any]) -> Item:
        if story.get("type") != "story":
            raise RecordSkipped(f"not a story: {story.get('id')}")

        story_id = story["id"]
        posted = story.get("time")
        return self.build_item(
            source,
            local_id=str(story_id),
            title=str(story.get("title") or ""),
            primary_timestamp=(
                utc_iso_from_epoch(posted) if isinstance(posted, (int, float)) else self.now_iso()
            ),
            external_url=story.get("url") or f"https://news.ycombinator.com/item?id={story_id}",
            score=story.get("score"),
            comment_count=story.get("descendants"),
            author=story.get("by"),
        )
