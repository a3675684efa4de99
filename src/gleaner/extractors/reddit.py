"""Reddit listing extractor (``/r/<sub>/hot.json``)."""

from __future__ import annotations

import json
import logging
from typing import Any

from gleaner.errors import RecordSkipped, SourceError
from gleaner.extractors.base import Extractor
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import truncate, utc_iso_from_epoch

logger = logging.getLogger(__name__)

SELFTEXT_LIMIT = 200


class RedditExtractor(Extractor):
    @property
    def kind(self) -> SourceKind:
        return SourceKind.REDDIT

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        try:
            listing = json.loads(raw_text)
        except json.JSONDecodeError as exc:
            raise SourceError(f"Invalid listing JSON: {exc}", source_id=source.id) from exc

        data = listing.get("data") if isinstance(listing, dict) else None
        children = data.get("children") if isinstance(data, dict) else None
        if not isinstance(children, list):
            raise SourceError("Listing has no data.children", source_id=source.id)

        posts = [child.get("data") for child in children if isinstance(child, dict)]
        return self.collect(posts, lambda post: self._to_item(source, post))

    def _to_item(self, source: SourceSpec, post: dict[str, Any]) -> Item:
        if post.get("stickied"):
            raise RecordSkipped(f"stickied post {post.get('id')}")

        url = post.get("url") or ""
        if not url.startswith("http"):
            url = f"https://reddit.com{post.get('permalink', '')}"

        created = post.get("created_utc")
        return self.build_item(
            source,
            local_id=str(post["id"]),
            title=str(post.get("title") or ""),
            primary_timestamp=(
                utc_iso_from_epoch(created) if isinstance(created, (int, float)) else self.now_iso()
            ),
            description=truncate(post.get("selftext") or "", SELFTEXT_LIMIT),
            tags=[post["subreddit"]] if post.get("subreddit") else (),
            external_url=url,
            score=post.get("score"),
            comment_count=post.get("num_comments"),
            author=post.get("author"),
        )
