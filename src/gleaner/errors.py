"""Error taxonomy for the ingestion and synthesis pipelines.

Only :class:`ReduceFailure` escapes a top-level operation. Source,
record and chunk errors are recovered where they happen and surface,
at most, as entries in a :class:`~gleaner.models.CrawlOutcome` or a
report's ``meta.failed_chunks`` count.
"""

from __future__ import annotations


class GleanerError(Exception):
    """Base class for all gleaner errors."""


class ConfigError(GleanerError):
    """Raised when configuration is unusable (unknown kind, bad values)."""


class SourceError(GleanerError):
    """One adapter/source failed. Recorded by the orchestrator, non-fatal."""

    def __init__(self, message: str, *, source_id: str = "") -> None:
        super().__init__(message)
        self.source_id = source_id


class FetchError(SourceError):
    """A fetch returned a non-2xx status or failed at the transport layer."""

    def __init__(self, message: str, *, url: str = "", status: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class RecordSkipped(GleanerError):
    """One candidate record was malformed. Dropped silently by the adapter."""


class ChunkSynthesisError(GleanerError):
    """One map-step chunk failed. Its contribution is omitted from reduce."""

    def __init__(self, message: str, *, chunk_index: int = -1) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index


class ReduceFailure(GleanerError):
    """The terminal synthesis call failed. Fatal to that analysis."""
