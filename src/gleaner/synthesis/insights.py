"""Cross-run accumulation of insights per scope."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from gleaner.models import InsightCollection, ScopedInsight, SynthesizedReport

logger = logging.getLogger(__name__)


def merge_insights(
    collection: InsightCollection,
    report: SynthesizedReport,
    scope: str,
    *,
    now: datetime | None = None,
) -> InsightCollection:
    """Append the report's new insights under ``scope``.

    An insight is new when ``(scope, lower-cased trimmed title)`` is not
    already present; the first occurrence wins, including within one
    report. The input collection is not modified.
    """
    added_at = now or datetime.now(tz=UTC)
    seen = collection.keys()
    merged = list(collection.insights)
    added = 0

    for insight in report.insights:
        entry = ScopedInsight(scope=scope, insight=insight, added_at=added_at)
        if entry.key in seen:
            continue
        seen.add(entry.key)
        merged.append(entry)
        added += 1

    logger.info("Added %d new insights to %s (%d total)", added, scope, len(merged))
    return InsightCollection(insights=merged)
