"""Chunk planning for corpora larger than one summarizer call can hold."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from gleaner.models import AnalysisMethod, MessageRecord

logger = logging.getLogger(__name__)

DEFAULT_SINGLE_PASS_THRESHOLD = 500
DEFAULT_CHUNK_CHAR_BUDGET = 20_000
DEFAULT_RECENT_RATIO = 0.3
DEFAULT_MAX_PER_REQUEST = 5000


@dataclass(frozen=True)
class AnalysisPlan:
    """How a corpus will be summarized.

    Single pass uses ``historical`` + ``recent``; chunked uses ``chunks``
    (the map step) and ``recent`` (verbatim context for the reduce step).
    """

    method: AnalysisMethod
    total_messages: int
    historical: list[MessageRecord] = field(default_factory=list)
    recent: list[MessageRecord] = field(default_factory=list)
    chunks: list[list[MessageRecord]] = field(default_factory=list)
    selected: list[int] = field(default_factory=list)

    @property
    def selected_chunks(self) -> list[list[MessageRecord]]:
        return [self.chunks[i] for i in self.selected]


def upload_chunks(
    messages: Sequence[MessageRecord], max_per_request: int = DEFAULT_MAX_PER_REQUEST
) -> list[list[MessageRecord]]:
    """Split a corpus into transport-sized batches, preserving order."""
    if max_per_request <= 0:
        raise ValueError("max_per_request must be positive")
    return [
        list(messages[start : start + max_per_request])
        for start in range(0, len(messages), max_per_request)
    ]


def rendered_size(message: MessageRecord) -> int:
    """Approximate serialized size of one message, newline included."""
    return len(message.render()) + 1


def split_by_char_budget(
    messages: Sequence[MessageRecord], budget: int = DEFAULT_CHUNK_CHAR_BUDGET
) -> list[list[MessageRecord]]:
    """Contiguous chunks whose rendered size stays within ``budget``.

    Never drops or duplicates a record. A record larger than the budget
    on its own becomes a single-record chunk.
    """
    if budget <= 0:
        raise ValueError("budget must be positive")

    chunks: list[list[MessageRecord]] = []
    current: list[MessageRecord] = []
    size = 0
    for message in messages:
        cost = rendered_size(message)
        if current and size + cost > budget:
            chunks.append(current)
            current, size = [], 0
        current.append(message)
        size += cost
    if current:
        chunks.append(current)
    return chunks


def sample_evenly(count: int, limit: int | None) -> list[int]:
    """Indices of at most ``limit`` items spread evenly over ``count``."""
    if limit is None or count <= limit:
        return list(range(count))
    step = count // limit
    return [i * step for i in range(limit)]


class ChunkPlanner:
    """Decides between a single summarizer pass and map-reduce chunking."""

    def __init__(
        self,
        single_pass_threshold: int = DEFAULT_SINGLE_PASS_THRESHOLD,
        chunk_char_budget: int = DEFAULT_CHUNK_CHAR_BUDGET,
        recent_ratio: float = DEFAULT_RECENT_RATIO,
        max_map_chunks: int | None = None,
        max_per_request: int = DEFAULT_MAX_PER_REQUEST,
    ) -> None:
        if not 0 <= recent_ratio <= 1:
            raise ValueError("recent_ratio must be between 0 and 1")
        if max_per_request <= 0:
            raise ValueError("max_per_request must be positive")
        self.single_pass_threshold = single_pass_threshold
        self.chunk_char_budget = chunk_char_budget
        self.recent_ratio = recent_ratio
        self.max_map_chunks = max_map_chunks
        self.max_per_request = max_per_request

    def plan(self, messages: Sequence[MessageRecord]) -> AnalysisPlan:
        """Plan the summarizer calls for ``messages``.

        No call carries more than ``max_per_request`` records: the
        transport cap applies first, then the character budget.
        """
        total = len(messages)
        recent_count = self._recent_count(total)

        if total <= min(self.single_pass_threshold, self.max_per_request):
            split = total - recent_count
            return AnalysisPlan(
                method=AnalysisMethod.SINGLE,
                total_messages=total,
                historical=list(messages[:split]),
                recent=list(messages[split:]),
            )

        chunks = [
            chunk
            for batch in upload_chunks(messages, self.max_per_request)
            for chunk in split_by_char_budget(batch, self.chunk_char_budget)
        ]
        selected = sample_evenly(len(chunks), self.max_map_chunks)
        recent = self._recent_window(messages[total - recent_count :])
        logger.info(
            "Planned %d chunks for %d messages (%d selected for the map step)",
            len(chunks),
            total,
            len(selected),
        )
        return AnalysisPlan(
            method=AnalysisMethod.CHUNKED,
            total_messages=total,
            recent=recent,
            chunks=chunks,
            selected=selected,
        )

    def _recent_count(self, total: int) -> int:
        if total == 0 or self.recent_ratio == 0:
            return 0
        return min(total, max(1, round(total * self.recent_ratio)))

    def _recent_window(self, tail: Sequence[MessageRecord]) -> list[MessageRecord]:
        """Newest messages of ``tail`` that fit the char budget and the transport cap."""
        window: list[MessageRecord] = []
        size = 0
        for message in reversed(tail):
            cost = rendered_size(message)
            if window and size + cost > self.chunk_char_budget:
                break
            window.append(message)
            size += cost
            if len(window) >= self.max_per_request:
                break
        window.reverse()
        return window
