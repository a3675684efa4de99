"""Unified configuration loaded from .gleaner.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import re
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".gleaner.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
]
GLOBAL_CONFIG_PATH = Path.home() / ".config" / "gleaner" / "config.toml"

_OFFSET_RE = re.compile(r"^[+-]\d{2}:\d{2}$")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
)


class CrawlConfig(BaseModel):
    """[crawl] section."""

    source_utc_offset: str = "+09:00"
    inter_source_delay: float = 1.0
    detail_fetch_delay: float = 0.5
    max_detail_fetches: int = 10
    detail_batch_size: int = 5
    batch_delay: float = 0.1
    max_index_items: int = 30
    fetch_timeout: int = 30
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "ko-KR,ko;q=0.9,en;q=0.8"

    @field_validator("source_utc_offset")
    @classmethod
    def _check_offset(cls, value: str) -> str:
        if not _OFFSET_RE.match(value):
            raise ValueError(f"UTC offset must look like +09:00, got {value!r}")
        return value


class SynthesisConfig(BaseModel):
    """[synthesis] section.

    The threshold and character budget are empirical; only the shape
    "small corpora get one call, large corpora get several" matters.
    """

    single_pass_threshold: int = 500
    chunk_char_budget: int = 20_000
    recent_ratio: float = 0.3
    max_messages_per_request: int = 5_000
    chunk_delay: float = 0.5
    max_map_chunks: int | None = None

    @field_validator("recent_ratio")
    @classmethod
    def _check_ratio(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("recent_ratio must be between 0 and 1")
        return value

    @field_validator("max_messages_per_request")
    @classmethod
    def _check_request_cap(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_messages_per_request must be positive")
        return value


class LLMSectionConfig(BaseModel):
    """[llm] section."""

    model: str | None = None
    timeout: int = 120


class StoreSectionConfig(BaseModel):
    """[store] section."""

    directory: str = "./gleaner-data"


class GleanerConfig(BaseModel):
    """Top-level configuration."""

    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    synthesis: SynthesisConfig = Field(default_factory=SynthesisConfig)
    llm: LLMSectionConfig = Field(default_factory=LLMSectionConfig)
    store: StoreSectionConfig = Field(default_factory=StoreSectionConfig)


def load_config(path: str | Path | None = None) -> GleanerConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .gleaner.toml in CWD
    3. ~/.config/gleaner/config.toml

    Then overlay environment variables.

    Args:
        path: Explicit path to a TOML file.

    Returns:
        Merged GleanerConfig.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        if not data and GLOBAL_CONFIG_PATH.exists():
            data = _load_toml(GLOBAL_CONFIG_PATH)
            logger.info("Loaded config from %s", GLOBAL_CONFIG_PATH)

    config = GleanerConfig.model_validate(data) if data else GleanerConfig()

    return _apply_env_vars(config)


def merge_cli_overrides(config: GleanerConfig, **cli_kwargs: object) -> GleanerConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only overrides values where the CLI flag was explicitly provided
    (i.e., not None).
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "model": ("llm", "model"),
        "llm_timeout": ("llm", "timeout"),
        "store_dir": ("store", "directory"),
        "source_offset": ("crawl", "source_utc_offset"),
        "threshold": ("synthesis", "single_pass_threshold"),
        "chunk_chars": ("synthesis", "chunk_char_budget"),
        "max_chunks": ("synthesis", "max_map_chunks"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = str(value) if isinstance(value, Path) else value

    return GleanerConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: GleanerConfig) -> GleanerConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "GLEANER_MODEL": ("llm", "model"),
        "GLEANER_SOURCE_OFFSET": ("crawl", "source_utc_offset"),
        "GLEANER_DATA_DIR": ("store", "directory"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    for env_var, field in [
        ("GLEANER_SINGLE_PASS_THRESHOLD", "single_pass_threshold"),
        ("GLEANER_CHUNK_CHAR_BUDGET", "chunk_char_budget"),
    ]:
        raw = os.environ.get(env_var)
        if raw is None:
            continue
        try:
            data["synthesis"][field] = int(raw)
        except ValueError:
            logger.warning("Ignoring non-integer %s=%r", env_var, raw)

    return GleanerConfig.model_validate(data)
