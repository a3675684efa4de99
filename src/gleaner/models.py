"""Pure data models for the ingestion and synthesis pipelines.

All Pydantic models and enums live here. No I/O, no business logic.
Services import from this module; this module only imports from the
stdlib and pydantic.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

LOCATION_UNKNOWN = "location unknown"
COST_UNKNOWN = "cost unknown"
COST_FREE = "free"
ONLINE_LOCATION = "online"

M = TypeVar("M", bound=BaseModel)

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SourceKind(StrEnum):
    """Adapter selector carried on every SourceSpec."""

    ONOFFMIX = "onoffmix"
    JSONLD = "jsonld"
    RSS = "rss"
    HACKERNEWS = "hackernews"
    REDDIT = "reddit"
    GEEKNEWS = "geeknews"


class Category(StrEnum):
    """Deterministically inferred item category."""

    SEMINAR = "seminar"
    CONFERENCE = "conference"
    WORKSHOP = "workshop"
    NETWORKING = "networking"
    STUDY = "study"
    OTHER = "other"


class InsightCategory(StrEnum):
    """Closed set of insight kinds the synthesizer may emit."""

    COMMAND = "command"
    NUMBER = "number"
    SOLUTION = "solution"
    TOOL = "tool"
    TREND = "trend"
    BUSINESS = "business"


class ActionType(StrEnum):
    """How an action suggestion can be put to use."""

    BLOG = "blog"
    PROJECT = "project"
    LEARNING = "learning"
    NETWORKING = "networking"


class AnalysisMethod(StrEnum):
    SINGLE = "single"
    CHUNKED = "chunked"


# ---------------------------------------------------------------------------
# Crawl models
# ---------------------------------------------------------------------------


def _require_offset(value: str) -> str:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {value!r}")
    return value


class SourceSpec(BaseModel):
    """One source to crawl. Supplied by the caller, never mutated."""

    id: str
    kind: SourceKind
    endpoint: str
    name: str = ""
    keywords: list[str] = Field(default_factory=list)
    is_active: bool = True


class Item(BaseModel):
    """Canonical extracted record.

    ``id`` is derived only from immutable source identifiers, so a
    re-extraction of the same upstream record yields the same ``id``
    and merges instead of duplicating.
    """

    id: str
    source_id: str
    kind: SourceKind
    title: str
    description: str = ""
    primary_timestamp: str
    secondary_timestamp: str | None = None
    location: str | None = None
    is_online: bool = False
    cost_label: str = COST_UNKNOWN
    tags: list[str] = Field(default_factory=list)
    category: Category = Category.OTHER
    external_url: str = ""
    crawled_at: str = Field(default_factory=lambda: datetime.now(tz=UTC).isoformat())
    organizer: str | None = None
    capacity: str | None = None
    image_url: str | None = None
    author: str | None = None
    score: int | None = None
    comment_count: int | None = None

    @field_validator("primary_timestamp")
    @classmethod
    def _check_primary(cls, value: str) -> str:
        return _require_offset(value)

    @field_validator("secondary_timestamp")
    @classmethod
    def _check_secondary(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_offset(value)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title is required")
        return value

    @property
    def starts_at(self) -> datetime:
        """``primary_timestamp`` as an aware datetime."""
        return datetime.fromisoformat(self.primary_timestamp)


class SourceErrorRecord(BaseModel):
    """One failed source in a crawl run."""

    source_id: str
    message: str


class CrawlRequest(BaseModel):
    sources: list[SourceSpec] = Field(default_factory=list)


class CrawlOutcome(BaseModel):
    """Result of one orchestrated run; always complete, even on failures."""

    items: list[Item] = Field(default_factory=list)
    errors: list[SourceErrorRecord] = Field(default_factory=list)
    filtered_out: int = 0
    sources_processed: int = 0


# ---------------------------------------------------------------------------
# Synthesis models
# ---------------------------------------------------------------------------


class MessageRecord(BaseModel):
    """One chat-log line. Order across a corpus is chronological."""

    model_config = ConfigDict(frozen=True)

    timestamp: str = ""
    author: str = ""
    text: str

    def render(self) -> str:
        return f"[{self.timestamp}] {self.author}: {self.text}"


class Insight(BaseModel):
    """An atomic finding extracted from a corpus."""

    category: InsightCategory
    title: str
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    source_quotes: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _check_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("insight title is required")
        return value

    @property
    def normalized_title(self) -> str:
        return self.title.lower().strip()


class SharedResource(BaseModel):
    url: str
    title: str = ""
    description: str = ""


class ActionSuggestion(BaseModel):
    type: ActionType
    title: str
    description: str = ""
    related_insight_titles: list[str] = Field(default_factory=list)


class ChunkSummary(BaseModel):
    """Map-step output for one chunk. Consumed only by the reduce step."""

    model_config = ConfigDict(frozen=True)

    period_label: str = ""
    main_topics: list[str] = Field(default_factory=list)
    key_findings: list[str] = Field(default_factory=list)
    active_authors: list[str] = Field(default_factory=list)
    notable_quotes: list[str] = Field(default_factory=list)
    insights: list[Insight] = Field(default_factory=list)
    resources: list[SharedResource] = Field(default_factory=list)

    @classmethod
    def from_llm(cls, data: dict[str, Any], *, period_label: str = "") -> ChunkSummary:
        """Build a summary from best-effort model JSON, defaulting every key."""
        return cls(
            period_label=_as_str(data.get("period_label")) or period_label,
            main_topics=_str_list(data.get("main_topics")),
            key_findings=_str_list(data.get("key_findings")),
            active_authors=_str_list(data.get("active_authors")),
            notable_quotes=_str_list(data.get("notable_quotes")),
            insights=_model_list(data.get("insights"), Insight),
            resources=_model_list(data.get("resources"), SharedResource),
        )


class ReportMeta(BaseModel):
    analysis_method: AnalysisMethod = AnalysisMethod.SINGLE
    total_chunks: int = 0
    chunks_analyzed: int = 0
    failed_chunks: int = 0
    model: str | None = None


class SynthesizedReport(BaseModel):
    """Final output of one analysis invocation.

    Every container defaults to empty so consumers branch only on
    "empty", never on "missing".
    """

    overall_period: str = ""
    message_count: int = 0
    top_authors: list[str] = Field(default_factory=list)
    top_topics: list[str] = Field(default_factory=list)
    recent_detail: str = ""
    historical_brief: str = ""
    insights: list[Insight] = Field(default_factory=list)
    action_suggestions: list[ActionSuggestion] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    open_questions: list[str] = Field(default_factory=list)
    shared_resources: list[SharedResource] = Field(default_factory=list)
    meta: ReportMeta = Field(default_factory=ReportMeta)

    @classmethod
    def from_llm(cls, data: dict[str, Any]) -> SynthesizedReport:
        """Validate the reduce response structurally, defaulting missing keys."""
        return cls(
            overall_period=_as_str(data.get("overall_period")),
            top_authors=_str_list(data.get("top_authors")),
            top_topics=_str_list(data.get("top_topics")),
            recent_detail=_as_str(data.get("recent_detail")),
            historical_brief=_as_str(data.get("historical_brief")),
            insights=_model_list(data.get("insights"), Insight),
            action_suggestions=_model_list(data.get("action_suggestions"), ActionSuggestion),
            decisions=_str_list(data.get("decisions")),
            open_questions=_str_list(data.get("open_questions")),
            shared_resources=_model_list(data.get("shared_resources"), SharedResource),
        )

    @property
    def has_findings(self) -> bool:
        return bool(self.insights or self.top_topics or self.recent_detail)


class AnalyzeRequest(BaseModel):
    messages: list[MessageRecord] = Field(default_factory=list)
    scope_label: str = ""


class ScopedInsight(BaseModel):
    """An insight stored under the scope (room, file) it came from."""

    scope: str
    insight: Insight
    added_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def key(self) -> tuple[str, str]:
        return (self.scope, self.insight.normalized_title)


class InsightCollection(BaseModel):
    """Caller-held running collection; append-only, never pruned."""

    insights: list[ScopedInsight] = Field(default_factory=list)

    def keys(self) -> set[tuple[str, str]]:
        return {s.key for s in self.insights}

    def for_scope(self, scope: str) -> list[Insight]:
        return [s.insight for s in self.insights if s.scope == scope]


# ---------------------------------------------------------------------------
# Deserialization-boundary helpers
# ---------------------------------------------------------------------------


def _as_str(value: object) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _str_list(value: object) -> list[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    result: list[str] = []
    for entry in value:
        text = _as_str(entry)
        if text:
            result.append(text)
    return result


def _model_list(value: object, model: type[M]) -> list[M]:
    if not isinstance(value, list):
        return []
    result: list[M] = []
    for entry in value:
        if not isinstance(entry, dict):
            continue
        try:
            result.append(model.model_validate(entry))
        except ValidationError:
            continue
    return result
