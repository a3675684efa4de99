"""Tests for the Reddit listing extractor."""

from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest

from gleaner.config import CrawlConfig
from gleaner.errors import SourceError
from gleaner.extractors.reddit import RedditExtractor
from gleaner.models import SourceKind, SourceSpec

NOW = datetime(2026, 3, 1, 3, 0, tzinfo=UTC)

SOURCE = SourceSpec(
    id="r-python", kind=SourceKind.REDDIT, endpoint="https://reddit.test/r/Python/hot.json"
)


def _listing(*posts: dict) -> str:
    return json.dumps({"kind": "Listing", "data": {"children": [{"data": p} for p in posts]}})


def _extract(raw: str) -> list:
    extractor = RedditExtractor(config=CrawlConfig(), fetcher=None, limiter=None, now=lambda: NOW)
    return extractor.extract(SOURCE, raw)


class TestRedditExtractor:
    def test_posts(self):
        raw = _listing(
            {
                "id": "abc",
                "title": "Python 3.14 released",
                "url": "https://python.test/news",
                "created_utc": 1772445600.0,
                "selftext": "x" * 500,
                "subreddit": "Python",
                "score": 900,
                "num_comments": 80,
                "author": "guido",
            }
        )
        [item] = _extract(raw)

        assert item.id == "reddit-abc"
        assert item.primary_timestamp == "2026-03-02T10:00:00+00:00"
        assert item.external_url == "https://python.test/news"
        assert len(item.description) == 200
        assert item.tags == ["Python"]
        assert item.score == 900
        assert item.comment_count == 80

    def test_self_post_uses_permalink(self):
        raw = _listing(
            {
                "id": "def",
                "title": "Ask: packaging?",
                "url": "/r/Python/comments/def/ask/",
                "permalink": "/r/Python/comments/def/ask/",
                "created_utc": 1772445600,
            }
        )
        [item] = _extract(raw)
        assert item.external_url == "https://reddit.com/r/Python/comments/def/ask/"

    def test_skips_stickied_and_malformed(self):
        raw = _listing(
            {"id": "pin", "title": "Weekly thread", "stickied": True},
            {"title": "no id"},
            {"id": "ok", "title": "Kept", "url": "https://a.test"},
        )
        assert [i.title for i in _extract(raw)] == ["Kept"]

    @pytest.mark.parametrize("raw", ["<html>", '{"data": {}}', "[]"])
    def test_bad_listing(self, raw):
        with pytest.raises(SourceError):
            _extract(raw)
