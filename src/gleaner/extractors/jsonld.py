"""schema.org Event extractor for pages embedding JSON-LD (Meetup and friends)."""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterator
from typing import Any

from bs4 import BeautifulSoup

from gleaner.errors import RecordSkipped
from gleaner.extractors.base import Extractor
from gleaner.models import LOCATION_UNKNOWN, ONLINE_LOCATION, Item, SourceKind, SourceSpec
from gleaner.normalize import (
    coerce_timestamp,
    cost_from_price,
    strip_html,
    truncate,
)

logger = logging.getLogger(__name__)

TEXT_LIMIT = 300


def iter_events(html: str) -> Iterator[dict[str, Any]]:
    """Yield every schema.org ``*Event`` object found in JSON-LD blocks."""
    soup = BeautifulSoup(html or "", "html.parser")
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.get_text().strip())
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable JSON-LD block")
            continue
        yield from _walk(data)


def _walk(data: object) -> Iterator[dict[str, Any]]:
    if isinstance(data, list):
        for entry in data:
            yield from _walk(entry)
    elif isinstance(data, dict):
        if _is_event(data.get("@type")):
            yield data
        if "@graph" in data:
            yield from _walk(data["@graph"])


def _is_event(type_value: object) -> bool:
    types = type_value if isinstance(type_value, list) else [type_value]
    return any(isinstance(t, str) and t.endswith("Event") for t in types)


def stable_event_id(event: dict[str, Any]) -> str:
    """Hash of the event's own identifier; empty when it has none."""
    identifier = event.get("url") or event.get("@id") or ""
    if not isinstance(identifier, str) or not identifier.strip():
        return ""
    return hashlib.sha256(identifier.strip().encode()).hexdigest()[:16]


def _first(value: object) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _location(event: dict[str, Any]) -> tuple[str, bool]:
    mode = str(event.get("eventAttendanceMode") or "")
    online = "Online" in mode or "Mixed" in mode

    place = _first(event.get("location"))
    if isinstance(place, str) and place.strip():
        return place.strip(), online
    if isinstance(place, dict):
        if place.get("@type") == "VirtualLocation":
            return ONLINE_LOCATION, True
        address = place.get("address")
        locality = address.get("addressLocality") if isinstance(address, dict) else address
        name = place.get("name") or locality
        if isinstance(name, str) and name.strip():
            return name.strip(), online

    return (ONLINE_LOCATION if online else LOCATION_UNKNOWN), online


def _name_of(value: object) -> str | None:
    value = _first(value)
    if isinstance(value, dict):
        value = value.get("name")
    return value.strip() if isinstance(value, str) and value.strip() else None


def _image(value: object) -> str | None:
    value = _first(value)
    if isinstance(value, dict):
        value = value.get("url")
    return value if isinstance(value, str) and value else None


class JsonLdEventExtractor(Extractor):
    """Extracts schema.org events embedded as JSON-LD in an HTML page."""

    @property
    def kind(self) -> SourceKind:
        return SourceKind.JSONLD

    def extract(self, source: SourceSpec, raw_text: str) -> list[Item]:
        return self.collect(iter_events(raw_text), lambda event: self._to_item(source, event))

    def _to_item(self, source: SourceSpec, event: dict[str, Any]) -> Item:
        local_id = stable_event_id(event)
        if not local_id:
            raise RecordSkipped("JSON-LD event without url or @id")

        location, online = _location(event)
        offers = _first(event.get("offers"))
        price = offers.get("price") if isinstance(offers, dict) else None
        end = event.get("endDate")

        return self.build_item(
            source,
            local_id=local_id,
            title=str(event.get("name") or ""),
            primary_timestamp=coerce_timestamp(
                str(event.get("startDate") or ""), self.offset, now=self._now()
            ),
            secondary_timestamp=(
                coerce_timestamp(str(end), self.offset, now=self._now()) if end else None
            ),
            location=location,
            online=online or location == ONLINE_LOCATION,
            description=truncate(strip_html(str(event.get("description") or "")), TEXT_LIMIT),
            cost_label=cost_from_price(price),
            external_url=str(event.get("url") or source.endpoint),
            organizer=_name_of(event.get("organizer")),
            image_url=_image(event.get("image")),
        )
