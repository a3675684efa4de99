"""Prompts and JSON shapes for chat-log synthesis."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from gleaner.models import ChunkSummary, MessageRecord
from gleaner.synthesis.chatlog import messages_to_text

INSIGHT_SHAPE = """\
{"category": "command|number|solution|tool|trend|business", "title": "", \
"content": "", "tags": [], "source_quotes": ["verbatim quote"]}"""

CHUNK_SCHEMA = f"""\
{{
  "period_label": "date range covered",
  "main_topics": ["topic"],
  "key_findings": ["concrete finding"],
  "active_authors": ["author"],
  "notable_quotes": ["verbatim quote"],
  "insights": [{INSIGHT_SHAPE}],
  "resources": [{{"url": "", "title": "", "description": ""}}]
}}"""

REPORT_SCHEMA = f"""\
{{
  "overall_period": "date range covered",
  "top_authors": ["author"],
  "top_topics": ["topic"],
  "recent_detail": "detailed account of the most recent conversation",
  "historical_brief": "short account of the earlier conversation",
  "insights": [{INSIGHT_SHAPE}],
  "action_suggestions": [{{"type": "blog|project|learning|networking", "title": "", \
"description": "", "related_insight_titles": []}}],
  "decisions": ["decision"],
  "open_questions": ["question"],
  "shared_resources": [{{"url": "", "title": "", "description": ""}}]
}}"""

NONE = "(none)"

EXTRACTION_RULES = """\
Extract useful knowledge and trends from this developer community chat.

Insight categories:
1. command: commands and settings (e.g. "/compact", "user-invocable: true")
2. number: prices and figures (e.g. "$100/month", "24GB RAM minimum")
3. solution: a problem and what fixed it
4. tool: tool recommendations and comparisons
5. trend: market or technology trends
6. business: revenue and business observations

Rules:
- Name concrete tools, values and observations.
- Never write meta statements such as "X was discussed" or "info was shared".
- Every insight carries 1-3 verbatim source_quotes from the chat.
- Omit a field's content rather than inventing it."""


def chunk_prompt(messages: Sequence[MessageRecord], index: int, total: int) -> str:
    """Map-step prompt for one chunk."""
    return f"""\
{EXTRACTION_RULES}

This is chunk {index + 1} of {total}, in chronological order.

Chat:
{messages_to_text(messages)}"""


def single_pass_prompt(
    historical: Sequence[MessageRecord], recent: Sequence[MessageRecord], scope: str = ""
) -> str:
    """Prompt for corpora small enough to summarize in one call."""
    header = f"Chat room: {scope}\n\n" if scope else ""
    return f"""\
{header}{EXTRACTION_RULES}

Describe the recent conversation in detail (recent_detail) and the earlier
conversation briefly (historical_brief). Suggest 4-8 concrete actions across
the four action types, grounded in the insights.

## Earlier conversation ({len(historical)} messages)
{messages_to_text(historical) or NONE}

## Recent conversation ({len(recent)} messages)
{messages_to_text(recent) or NONE}"""


def reduce_prompt(
    summaries: Sequence[ChunkSummary],
    recent: Sequence[MessageRecord],
    *,
    total_messages: int,
    scope: str = "",
) -> str:
    """Reduce-step prompt: merged chunk summaries plus the recent window."""
    topics = _dedupe(t for s in summaries for t in s.main_topics)
    findings = [f for s in summaries for f in s.key_findings]
    authors = _dedupe(a for s in summaries for a in s.active_authors)
    quotes = [q for s in summaries for q in s.notable_quotes]

    seen_titles: set[str] = set()
    insight_lines: list[str] = []
    for summary in summaries:
        for insight in summary.insights:
            if insight.normalized_title in seen_titles:
                continue
            seen_titles.add(insight.normalized_title)
            line = f"- [{insight.category}] {insight.title}: {insight.content}"
            if insight.source_quotes:
                line += " (quotes: " + " | ".join(insight.source_quotes) + ")"
            insight_lines.append(line)

    seen_urls: set[str] = set()
    resource_lines: list[str] = []
    for summary in summaries:
        for resource in summary.resources:
            if not resource.url or resource.url in seen_urls:
                continue
            seen_urls.add(resource.url)
            text = f"{resource.title} {resource.description}".strip()
            resource_lines.append(f"- {resource.url}: {text}")

    periods = [s.period_label for s in summaries if s.period_label]
    author_line = ", ".join(authors) or NONE
    header = f"Chat room: {scope}\n" if scope else ""

    return f"""\
{header}Merge these partial summaries of {total_messages} chat messages into one report.
Merge duplicate insights, keep source_quotes verbatim, and suggest 4-8 concrete
actions across the four action types. Describe the recent conversation in
detail (recent_detail) and everything earlier briefly (historical_brief).
Never write meta statements such as "X was discussed".

## Periods
{_bullets(periods)}

## Topics
{_bullets(topics)}

## Findings
{_bullets(findings)}

## Active authors
{author_line}

## Notable quotes
{_bullets(quotes)}

## Insights
{_lines(insight_lines)}

## Shared resources
{_lines(resource_lines)}

## Recent conversation, verbatim ({len(recent)} messages)
{messages_to_text(recent) or NONE}"""


def _dedupe(values: Iterable[str]) -> list[str]:
    result: list[str] = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


def _bullets(values: Sequence[str]) -> str:
    return _lines([f"- {v}" for v in values])


def _lines(lines: Sequence[str]) -> str:
    return "\n".join(lines) or NONE
