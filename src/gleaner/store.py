"""Storage collaborator: previously merged items and accumulated insights."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, Field

from gleaner.models import InsightCollection, Item

logger = logging.getLogger(__name__)

ITEMS_DIRNAME = "items"
INSIGHTS_FILENAME = "insights.json"

_UNSAFE_RE = re.compile(r"[^\w.-]+")


class Store(Protocol):
    def get_existing(self, scope_key: str) -> list[Item]: ...

    def put_merged(self, scope_key: str, merged: list[Item]) -> None: ...


class ItemSnapshot(BaseModel):
    """On-disk shape of one scope's merged items."""

    scope: str
    items: list[Item] = Field(default_factory=list)


def _safe_name(scope_key: str) -> str:
    name = _UNSAFE_RE.sub("_", scope_key).strip("._")
    return name or "default"


def _atomic_write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)


class JsonFileStore:
    """Stores each scope's items and the insight collection as JSON files.

    Writes go to a temporary file that is renamed into place, so a crash
    never leaves a half-written snapshot. A corrupt file is treated as
    empty with a warning.
    """

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def items_path(self, scope_key: str) -> Path:
        return self._root / ITEMS_DIRNAME / f"{_safe_name(scope_key)}.json"

    def get_existing(self, scope_key: str) -> list[Item]:
        """Load the items last stored under ``scope_key``."""
        path = self.items_path(scope_key)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return ItemSnapshot.model_validate(data).items
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt item store at %s, starting fresh", path)
            return []

    def put_merged(self, scope_key: str, merged: list[Item]) -> None:
        """Replace the stored items for ``scope_key``."""
        snapshot = ItemSnapshot(scope=scope_key, items=merged)
        _atomic_write(self.items_path(scope_key), snapshot.model_dump_json(indent=2))
        logger.debug("Stored %d items under %s", len(merged), scope_key)

    def load_insights(self) -> InsightCollection:
        path = self._root / INSIGHTS_FILENAME
        if not path.exists():
            return InsightCollection()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return InsightCollection.model_validate(data)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt insight store at %s, starting fresh", path)
            return InsightCollection()

    def save_insights(self, collection: InsightCollection) -> None:
        _atomic_write(self._root / INSIGHTS_FILENAME, collection.model_dump_json(indent=2))
