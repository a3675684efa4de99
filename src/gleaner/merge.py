"""Cross-batch deduplication, recency filtering and ordering of items.

Every function here is pure: inputs are never mutated and a new list is
returned, so callers owning separate collections can run concurrently.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from gleaner.models import Item
from gleaner.normalize import DEFAULT_OFFSET, offset_to_tz


def sort_items(items: Iterable[Item]) -> list[Item]:
    """Ascending by primary timestamp; ties broken by id."""
    return sorted(items, key=lambda item: (item.starts_at, item.id))


def merge_items(existing: Iterable[Item], incoming: Iterable[Item]) -> list[Item]:
    """Merge ``incoming`` into ``existing`` by stable id.

    Incoming entries overwrite existing entries with the same id
    (incoming is assumed fresher); existing-only entries are kept.
    Idempotent: ``merge(x, merge(x, y)) == merge(x, y)``.
    """
    by_id: dict[str, Item] = {}
    for item in existing:
        by_id[item.id] = item
    for item in incoming:
        by_id[item.id] = item
    return sort_items(by_id.values())


def local_midnight(now: datetime, offset: str = DEFAULT_OFFSET) -> datetime:
    """Start of ``now``'s calendar day in the source offset."""
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    local = now.astimezone(offset_to_tz(offset))
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def filter_recent(items: Iterable[Item], cutoff: datetime) -> tuple[list[Item], int]:
    """Drop items starting strictly before ``cutoff``.

    Returns:
        Tuple of (kept items, number filtered out).
    """
    kept: list[Item] = []
    dropped = 0
    for item in items:
        if item.starts_at < cutoff:
            dropped += 1
        else:
            kept.append(item)
    return kept, dropped


def rank_by_score(items: Iterable[Item]) -> list[Item]:
    """Highest score first, for trend listings; unscored items last."""
    return sorted(items, key=lambda item: (-(item.score or 0), item.id))
