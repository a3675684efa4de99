"""GeekNews (news.hada.io) front-page extractor."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from bs4 import BeautifulSoup, Tag

from gleaner.extractors.base import Extractor, site_root
from gleaner.models import Item, SourceKind, SourceSpec
from gleaner.normalize import clean_text, format_instant

logger = logging.getLogger(__name__)

_TOPIC_ID_RE = re.compile(r"topic\?id=(\d+)")
_POINTS_RE = re.compile(r"(\d+)\s*P")
_COMMENTS_RE = re.compile(r"(\d+)\s*개의 댓글")
_AGE_RE = re.compile(r"(\d+)\s*(분|시간|일)\s*전")

_AGE_UNITS = {"분": "minutes", "시간": "hours", "일": "days"}


@dataclass
class Topic:
    topic_id: str
    title: str
    url: str
    points: int | None = None
    comments: int | None = None
    age: timedelta | None = None


def parse_age(info: str) -> timedelta | None:
    """``3시간전`` → ``timedelta(hours=3)``."""
    match = _AGE_RE.search(info)
    if not match:
        return None
    return timedelta(**{_AGE_UNITS[match.group(2)]: int(match.group(1))})


def parse_topics(html: str, root: str = "https://news.hada.io") -> list[Topic]:
    """Topics from the front page; falls back to bare title links."""
    soup = BeautifulSoup(html or "", "html.parser")
    topics: list[Topic] = []
    for row in soup.select("div.topic_row"):
        topic = _row_topic(row, root)
        if topic is not None:
            topics.append(topic)
    if topics:
        return topics

    for link in soup.select("a.topictitle[href]"):
        match = _TOPIC_ID_RE.search(link["href"])
        title = clean_text(link.get_text(" ", strip=True))
        if match and title:
            topic_id = match.group(1)
            topics.append(Topic(topic_id=topic_id, title=title, url=f"{root}/topic?id={topic_id}"))
    return topics


def _row_topic(row: Tag, root: str) -> Topic | None:
    link = row.find("a", href=_TOPIC_ID_RE)
    if link is None:
        return None
    topic_id = _TOPIC_ID_RE.search(link["href"]).group(1)

    heading = row.select_one(".topictitle")
    title = clean_text((heading or link).get_text(" ", strip=True))
    if not title:
        return None

    original = row.find("a", href=re.compile(r"^https?://"), target="_blank")
    info_node = row.select_one(".topicinfo")
    info = info_node.get_text(" ", strip=True) if info_node else ""
    points = _POINTS_RE.search(info)
    comments = _COMMENTS_RE.search(info)
    return Topic(
        topic_id=topic_id,
        title=title,
        url=original["href"] if original else f"{root}/topic?id={topic_id}",
        points=int(points.group(1)) if points else None,
        comments=int(comments.group(1)) if comments else None,
        age=parse_age(info),
    )


class GeekNewsExtractor(Extractor):
    @property
    def kind(self) -> SourceKind:
        return SourceKind.GEEKNEWS

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        root = site_root(source.endpoint) or "https://news.hada.io"
        topics = parse_topics(raw_text, root)[: self._config.max_index_items]
        now = self._now()
        return self.collect(topics, lambda topic: self._to_item(source, topic, now))

    def _to_item(self, source: SourceSpec, topic: Topic, now: datetime) -> Item:
        posted = now - topic.age if topic.age else now
        return self.build_item(
            source,
            local_id=topic.topic_id,
            title=topic.title,
            primary_timestamp=format_instant(posted, self.offset),
            external_url=topic.url,
            score=topic.points,
            comment_count=topic.comments,
        )
