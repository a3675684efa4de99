"""Tests for the Hacker News extractor."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from gleaner.config import CrawlConfig
from gleaner.errors import SourceError
from gleaner.extractors.hackernews import HackerNewsExtractor, item_url
from gleaner.models import SourceKind, SourceSpec

NOW = datetime(2026, 3, 1, 3, 0, tzinfo=UTC)
ENDPOINT = "https://hn.test/v0/topstories.json"

SOURCE = SourceSpec(id="hn", kind=SourceKind.HACKERNEWS, endpoint=ENDPOINT)


def _extractor(fetcher, limiter, **config) -> HackerNewsExtractor:
    return HackerNewsExtractor(
        config=CrawlConfig(**config), fetcher=fetcher, limiter=limiter, now=lambda: NOW
    )


def _story(story_id: int, **fields) -> str:
    story = {
        "id": story_id,
        "type": "story",
        "title": f"Story {story_id}",
        "time": 1772445600,
        "score": 120,
        "descendants": 45,
        "by": "pg",
    }
    story.update(fields)
    return json.dumps(story)


class TestItemUrl:
    def test_sibling_path(self):
        assert item_url(ENDPOINT, 42) == "https://hn.test/v0/item/42.json"


class TestHackerNewsExtractor:
    def test_stories_only(self, fetcher, limiter):
        fetcher.add(ENDPOINT, "[1, 2, 3]")
        fetcher.add(item_url(ENDPOINT, 1), _story(1, url="https://example.test/post"))
        fetcher.add(item_url(ENDPOINT, 2), _story(2, type="comment"))
        fetcher.add(item_url(ENDPOINT, 3), "boom", status=500)

        items = _extractor(fetcher, limiter).crawl(SOURCE)

        assert len(items) == 1
        story = items[0]
        assert story.id == "hackernews-1"
        assert story.primary_timestamp == "2026-03-02T10:00:00+00:00"
        assert story.external_url == "https://example.test/post"
        assert story.score == 120
        assert story.comment_count == 45
        assert story.author == "pg"

    def test_discussion_url_fallback(self, fetcher, limiter):
        fetcher.add(item_url(ENDPOINT, 7), _story(7))
        [item] = _extractor(fetcher, limiter).extract(SOURCE, "[7]")
        assert item.external_url == "https://news.ycombinator.com/item?id=7"

    def test_batches_are_paced(self, fetcher, limiter):
        for story_id in (1, 2, 3):
            fetcher.add(item_url(ENDPOINT, story_id), _story(story_id))

        items = _extractor(fetcher, limiter, detail_batch_size=2).extract(SOURCE, "[1, 2, 3]")

        assert [i.id for i in items] == ["hackernews-1", "hackernews-2", "hackernews-3"]
        assert [key for key, _ in limiter.history] == ["hn-batch"]

    def test_caps_story_ids(self, fetcher, limiter):
        for story_id in (1, 2, 3):
            fetcher.add(item_url(ENDPOINT, story_id), _story(story_id))

        _extractor(fetcher, limiter, max_index_items=2).extract(SOURCE, "[1, 2, 3]")

        assert sorted(fetcher.calls) == [item_url(ENDPOINT, 1), item_url(ENDPOINT, 2)]

    def test_missing_time_uses_now(self, fetcher, limiter):
        fetcher.add(item_url(ENDPOINT, 5), _story(5, time=None))
        [item] = _extractor(fetcher, limiter).extract(SOURCE, "[5]")
        assert item.primary_timestamp == "2026-03-01T12:00:00+09:00"

    @pytest.mark.parametrize("body", ["not json", '{"ids": [1]}'])
    def test_bad_id_list(self, fetcher, limiter, body):
        with pytest.raises(SourceError):
            _extractor(fetcher, limiter).extract(SOURCE, body)
