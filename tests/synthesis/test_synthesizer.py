"""Tests for map-reduce synthesis with a scripted summarizer."""

from __future__ import annotations

import json

import pytest

from gleaner.config import SynthesisConfig
from gleaner.errors import ReduceFailure
from gleaner.llm import LLMError
from gleaner.models import AnalysisMethod, AnalyzeRequest, MessageRecord
from gleaner.synthesis.synthesizer import Synthesizer

# Each message renders to 36 chars ("[2026-03-01 10:05] kim: message 005" + newline).
MESSAGE_SIZE = 36

REPORT = {
    "overall_period": "2026-03-01",
    "top_topics": ["terminals"],
    "recent_detail": "Ghostty config tips",
    "insights": [{"category": "tool", "title": "Ghostty", "content": "fast GPU terminal"}],
}


def _messages(count: int) -> list[MessageRecord]:
    return [
        MessageRecord(timestamp=f"2026-03-01 10:{i:02d}", author="kim", text=f"message {i:03d}")
        for i in range(count)
    ]


def _chunk_json(index: int) -> str:
    return json.dumps({"main_topics": [f"topic-{index}"], "key_findings": [f"finding-{index}"]})


def _config(**overrides) -> SynthesisConfig:
    values = {
        "single_pass_threshold": 10,
        "chunk_char_budget": MESSAGE_SIZE * 10,
        "chunk_delay": 0.5,
    }
    values.update(overrides)
    return SynthesisConfig(**values)


def _handler(failing_chunks=(), reduce=lambda: json.dumps(REPORT)):
    def handle(prompt: str, schema: str, label: str) -> str:
        if label.startswith("chunk"):
            number = int(label.split()[1])
            if number in failing_chunks:
                raise LLMError(f"chunk {number} exploded")
            return _chunk_json(number)
        return reduce()

    return handle


# ── Single pass ─────────────────────────────────────────────────────────


class TestSinglePass:
    def test_one_call_with_scope(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        synthesizer = Synthesizer(_config(), summarizer, limiter)

        report = synthesizer.analyze(AnalyzeRequest(messages=_messages(8), scope_label="room"))

        assert [label for label, _ in summarizer.calls] == ["single room"]
        assert "Chat room: room" in summarizer.calls[0][1]
        assert report.meta.analysis_method == AnalysisMethod.SINGLE
        assert report.meta.model == "fake"
        assert report.message_count == 8
        assert [i.title for i in report.insights] == ["Ghostty"]

    def test_missing_keys_default_to_empty(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler(reduce=lambda: '{"recent_detail": "quiet day"}'))
        report = Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(3))
        )

        assert report.recent_detail == "quiet day"
        assert report.insights == []
        assert report.action_suggestions == []
        assert report.shared_resources == []

    def test_fenced_json_is_accepted(self, make_summarizer, limiter):
        fenced = "```json\n" + json.dumps(REPORT) + "\n```"
        summarizer = make_summarizer(_handler(reduce=lambda: fenced))
        report = Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(3))
        )
        assert report.top_topics == ["terminals"]

    def test_empty_object_is_an_empty_report(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler(reduce=lambda: "{}"))
        report = Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(3), scope_label="room")
        )

        assert report.insights == []
        assert report.top_topics == []
        assert report.message_count == 3
        assert report.meta.analysis_method == AnalysisMethod.SINGLE

    def test_unexpected_exception_is_reduce_failure(self, make_summarizer, limiter):
        def boom():
            raise OSError("broken pipe")

        summarizer = make_summarizer(_handler(reduce=boom))
        with pytest.raises(ReduceFailure, match="broken pipe"):
            Synthesizer(_config(), summarizer, limiter).analyze(
                AnalyzeRequest(messages=_messages(3))
            )

    def test_failure_is_reduce_failure(self, make_summarizer, limiter):
        def boom():
            raise LLMError("unreachable")

        summarizer = make_summarizer(_handler(reduce=boom))
        with pytest.raises(ReduceFailure):
            Synthesizer(_config(), summarizer, limiter).analyze(
                AnalyzeRequest(messages=_messages(3))
            )


# ── Map-reduce ──────────────────────────────────────────────────────────


class TestMapReduce:
    def test_chunks_then_reduce(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        synthesizer = Synthesizer(_config(), summarizer, limiter)

        report = synthesizer.analyze(AnalyzeRequest(messages=_messages(30), scope_label="room"))

        labels = [label for label, _ in summarizer.calls]
        assert labels == ["chunk 1", "chunk 2", "chunk 3", "reduce room"]
        assert report.meta.analysis_method == AnalysisMethod.CHUNKED
        assert report.meta.total_chunks == 3
        assert report.meta.chunks_analyzed == 3
        assert report.meta.failed_chunks == 0
        assert report.message_count == 30

    def test_reduce_prompt_carries_summaries_and_recent_window(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )

        reduce_prompt = summarizer.calls[-1][1]
        assert "topic-1" in reduce_prompt and "topic-3" in reduce_prompt
        assert "finding-2" in reduce_prompt
        assert "message 029" in reduce_prompt
        assert "2026-03-01 10:00 ~ 2026-03-01 10:09" in reduce_prompt

    def test_chunks_are_paced(self, make_summarizer, limiter):
        Synthesizer(_config(), make_summarizer(_handler()), limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )
        assert limiter.history == [("chunk", 0.5), ("chunk", 0.5)]

    def test_failed_chunk_is_not_fatal(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler(failing_chunks={2}))
        report = Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )

        assert report.meta.failed_chunks == 1
        assert report.meta.chunks_analyzed == 2
        assert "topic-2" not in summarizer.calls[-1][1]

    def test_unexpected_chunk_exception_is_not_fatal(self, make_summarizer, limiter):
        def handle(prompt, schema, label):
            if label == "chunk 1":
                raise TimeoutError("read timed out")
            return _chunk_json(2) if label.startswith("chunk") else json.dumps(REPORT)

        report = Synthesizer(_config(), make_summarizer(handle), limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )

        assert report.meta.failed_chunks == 1
        assert report.meta.chunks_analyzed == 2
        assert [i.title for i in report.insights] == ["Ghostty"]

    def test_unparseable_chunk_counts_as_failed(self, make_summarizer, limiter):
        def handle(prompt, schema, label):
            return "sorry, no JSON today" if label == "chunk 1" else json.dumps(REPORT)

        report = Synthesizer(_config(), make_summarizer(handle), limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )
        assert report.meta.failed_chunks == 1

    def test_all_chunks_failing_still_reduces(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler(failing_chunks={1, 2, 3}))
        report = Synthesizer(_config(), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )

        assert report.meta.chunks_analyzed == 0
        assert report.meta.failed_chunks == 3
        assert "message 029" in summarizer.calls[-1][1]

    def test_unparseable_reduce_is_fatal(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler(reduce=lambda: "I could not do it."))
        with pytest.raises(ReduceFailure):
            Synthesizer(_config(), summarizer, limiter).analyze(
                AnalyzeRequest(messages=_messages(30))
            )

    def test_max_map_chunks_limits_calls(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        report = Synthesizer(_config(max_map_chunks=2), summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(30))
        )

        assert [label for label, _ in summarizer.calls] == ["chunk 1", "chunk 2", "reduce"]
        assert report.meta.total_chunks == 3
        assert report.meta.chunks_analyzed == 2


class TestSummarizeChunk:
    def test_period_label_from_timestamps(self, make_summarizer, limiter):
        synthesizer = Synthesizer(_config(), make_summarizer(_handler()), limiter)
        summary = synthesizer.summarize_chunk(_messages(5), 0, 1)

        assert summary.period_label == "2026-03-01 10:00 ~ 2026-03-01 10:04"
        assert summary.main_topics == ["topic-1"]


# ── Transport cap ───────────────────────────────────────────────────────


class TestRequestCap:
    def test_no_call_exceeds_the_cap(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        config = _config(single_pass_threshold=50, max_messages_per_request=4)

        report = Synthesizer(config, summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(12))
        )

        for _, prompt in summarizer.calls:
            assert prompt.count("] kim: message") <= 4
        assert report.meta.analysis_method == AnalysisMethod.CHUNKED
        assert report.meta.total_chunks == 3

    def test_small_corpus_under_the_cap_stays_single(self, make_summarizer, limiter):
        summarizer = make_summarizer(_handler())
        config = _config(single_pass_threshold=50, max_messages_per_request=20)

        report = Synthesizer(config, summarizer, limiter).analyze(
            AnalyzeRequest(messages=_messages(12))
        )

        assert [label for label, _ in summarizer.calls] == ["single"]
        assert report.meta.analysis_method == AnalysisMethod.SINGLE
