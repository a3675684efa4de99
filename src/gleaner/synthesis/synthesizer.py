"""Map-reduce synthesis of chat corpora into a SynthesizedReport."""

from __future__ import annotations

import logging
from typing import Protocol

from gleaner.config import SynthesisConfig
from gleaner.errors import ChunkSynthesisError, ReduceFailure
from gleaner.llm import parse_json_object
from gleaner.models import (
    AnalysisMethod,
    AnalyzeRequest,
    ChunkSummary,
    MessageRecord,
    ReportMeta,
    SynthesizedReport,
)
from gleaner.ratelimit import RateLimiter
from gleaner.synthesis.chunking import AnalysisPlan, ChunkPlanner
from gleaner.synthesis.prompts import (
    CHUNK_SCHEMA,
    REPORT_SCHEMA,
    chunk_prompt,
    reduce_prompt,
    single_pass_prompt,
)

logger = logging.getLogger(__name__)


class SummarizerLike(Protocol):
    model: str | None

    def summarize(self, prompt: str, schema_hint: str, *, label: str = ...) -> str: ...


class Synthesizer:
    """Turns an AnalyzeRequest into a report via one or more summarizer calls.

    Chunk failures are logged and skipped. Only a failed terminal call
    (single pass or reduce) escapes, as :class:`ReduceFailure`.
    """

    def __init__(
        self,
        config: SynthesisConfig,
        summarizer: SummarizerLike,
        limiter: RateLimiter,
    ) -> None:
        self._config = config
        self._summarizer = summarizer
        self._limiter = limiter
        self._planner = ChunkPlanner(
            single_pass_threshold=config.single_pass_threshold,
            chunk_char_budget=config.chunk_char_budget,
            recent_ratio=config.recent_ratio,
            max_map_chunks=config.max_map_chunks,
            max_per_request=config.max_messages_per_request,
        )

    @property
    def planner(self) -> ChunkPlanner:
        return self._planner

    def analyze(self, request: AnalyzeRequest) -> SynthesizedReport:
        """Summarize ``request.messages``.

        Raises:
            ReduceFailure: If the terminal summarizer call fails or
                returns no usable JSON object.
        """
        plan = self._planner.plan(request.messages)
        scope = request.scope_label

        if plan.method == AnalysisMethod.SINGLE:
            prompt = single_pass_prompt(plan.historical, plan.recent, scope)
            report = self._terminal_call(prompt, label=f"single {scope}".strip())
            meta = ReportMeta(analysis_method=AnalysisMethod.SINGLE)
        else:
            summaries, failed = self._map(plan)
            prompt = reduce_prompt(
                summaries, plan.recent, total_messages=plan.total_messages, scope=scope
            )
            report = self._terminal_call(prompt, label=f"reduce {scope}".strip())
            meta = ReportMeta(
                analysis_method=AnalysisMethod.CHUNKED,
                total_chunks=len(plan.chunks),
                chunks_analyzed=len(summaries),
                failed_chunks=failed,
            )

        meta.model = self._summarizer.model
        report.message_count = plan.total_messages
        report.meta = meta
        logger.info(
            "Synthesized %d messages (%s): %d insights",
            plan.total_messages,
            meta.analysis_method,
            len(report.insights),
        )
        return report

    def summarize_chunk(
        self, messages: list[MessageRecord], index: int, total: int
    ) -> ChunkSummary:
        """Map step for one chunk.

        Raises:
            ChunkSynthesisError: If the call fails or yields no JSON object.
        """
        try:
            raw = self._summarizer.summarize(
                chunk_prompt(messages, index, total), CHUNK_SCHEMA, label=f"chunk {index + 1}"
            )
        except Exception as exc:
            # The summarizer is a black box; any failure is confined to this chunk.
            raise ChunkSynthesisError(str(exc) or type(exc).__name__, chunk_index=index) from exc

        data = parse_json_object(raw)
        if data is None:
            raise ChunkSynthesisError("empty or unparseable output", chunk_index=index)

        first, last = messages[0].timestamp, messages[-1].timestamp
        period = f"{first} ~ {last}" if first and last else ""
        return ChunkSummary.from_llm(data, period_label=period)

    def _map(self, plan: AnalysisPlan) -> tuple[list[ChunkSummary], int]:
        selected = plan.selected_chunks
        summaries: list[ChunkSummary] = []
        failed = 0
        for position, chunk in enumerate(selected):
            if position:
                self._limiter.delay("chunk", self._config.chunk_delay)
            logger.info("Summarizing chunk %d/%d", position + 1, len(selected))
            try:
                summaries.append(self.summarize_chunk(chunk, position, len(selected)))
            except ChunkSynthesisError as exc:
                failed += 1
                logger.warning("Chunk %d failed: %s", exc.chunk_index + 1, exc)
        return summaries, failed

    def _terminal_call(self, prompt: str, *, label: str) -> SynthesizedReport:
        try:
            raw = self._summarizer.summarize(prompt, REPORT_SCHEMA, label=label)
        except Exception as exc:
            raise ReduceFailure(str(exc) or type(exc).__name__) from exc

        data = parse_json_object(raw)
        if data is None:
            raise ReduceFailure(f"Summarizer returned no usable JSON ({label})")
        return SynthesizedReport.from_llm(data)
