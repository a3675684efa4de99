"""Canonicalization of extracted fields.

Dates from sources are local civil time with one known, fixed UTC
offset per source. Timestamps are built by concatenating that offset
onto the parsed wall-clock fields; nothing here consults the machine's
local timezone.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta, timezone

from gleaner.models import (
    COST_FREE,
    COST_UNKNOWN,
    LOCATION_UNKNOWN,
    ONLINE_LOCATION,
    Category,
)

DEFAULT_OFFSET = "+09:00"

_OFFSET_RE = re.compile(r"^([+-])(\d{2}):(\d{2})$")

# ``2026.03.14 (토) 14:00``, ``2026-03-14 14:00``, ``2026. 3. 14. 오후 2:00``,
# ``2026-03-14 2:00 PM``, ``2026/3/14``
_NUMERIC_DATE_RE = re.compile(
    r"(\d{4})\s*[.\-/]\s*(\d{1,2})\s*[.\-/]\s*(\d{1,2})\.?"
    r"(?:[^\d~]*?(오전|오후|AM|PM)?\s*(\d{1,2}):(\d{2})(?:\s*(AM|PM)\b)?)?",
    re.I,
)
# ``2026년 3월 14일 (토) 오후 2시 30분``
_KOREAN_DATE_RE = re.compile(
    r"(\d{4})\s*년\s*(\d{1,2})\s*월\s*(\d{1,2})\s*일"
    r"(?:[^\d~]*?(오전|오후)?\s*(\d{1,2})\s*(?:시|:)\s*(?:(\d{1,2})\s*분?)?)?"
)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def offset_to_tz(offset: str) -> timezone:
    """Turn ``+09:00`` into a fixed :class:`~datetime.timezone`."""
    match = _OFFSET_RE.match(offset)
    if not match:
        raise ValueError(f"Invalid UTC offset: {offset!r}")
    sign, hours, minutes = match.groups()
    delta = timedelta(hours=int(hours), minutes=int(minutes))
    return timezone(-delta if sign == "-" else delta)


def to_offset_iso(
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    offset: str = DEFAULT_OFFSET,
) -> str:
    """Build an ISO-8601 timestamp from wall-clock fields and a fixed offset.

    Raises:
        ValueError: If the fields do not form a real date/time or the
            offset is malformed.
    """
    if not _OFFSET_RE.match(offset):
        raise ValueError(f"Invalid UTC offset: {offset!r}")
    # Range check only; the naive datetime is discarded.
    datetime(year, month, day, hour, minute)
    return f"{year:04d}-{month:02d}-{day:02d}T{hour:02d}:{minute:02d}:00{offset}"


def _to_24h(hour: str | None, meridiem: str | None) -> int:
    h = int(hour) if hour else 0
    marker = (meridiem or "").upper()
    if marker in ("오후", "PM") and h < 12:
        return h + 12
    if marker in ("오전", "AM") and h == 12:
        return 0
    return h


def parse_local_datetime(text: str, offset: str = DEFAULT_OFFSET) -> str | None:
    """Parse a local civil date/time string into an offset ISO timestamp.

    Date-only strings resolve to midnight. Returns None when nothing
    parseable is found.
    """
    if not text:
        return None

    match = _KOREAN_DATE_RE.search(text)
    if match:
        year, month, day, meridiem, hour, minute = match.groups()
        try:
            return to_offset_iso(
                int(year),
                int(month),
                int(day),
                _to_24h(hour, meridiem),
                int(minute) if minute else 0,
                offset,
            )
        except ValueError:
            return None

    match = _NUMERIC_DATE_RE.search(text)
    if match:
        year, month, day, meridiem, hour, minute, trailing = match.groups()
        try:
            return to_offset_iso(
                int(year),
                int(month),
                int(day),
                _to_24h(hour, meridiem or trailing),
                int(minute) if minute else 0,
                offset,
            )
        except ValueError:
            return None

    return None


def format_instant(instant: datetime, offset: str = DEFAULT_OFFSET) -> str:
    """Express an aware instant in the source offset (seconds precision)."""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    return instant.astimezone(offset_to_tz(offset)).replace(microsecond=0).isoformat()


def normalize_timestamp(text: str, offset: str = DEFAULT_OFFSET, *, now: datetime) -> str:
    """Parse ``text`` or fall back to ``now``; never fails the record."""
    parsed = parse_local_datetime(text, offset)
    if parsed is not None:
        return parsed
    return format_instant(now, offset)


def coerce_timestamp(value: str, offset: str = DEFAULT_OFFSET, *, now: datetime) -> str:
    """Normalize a structured date value (JSON-LD, APIs).

    An ISO string that already carries an offset is kept as-is; a naive
    ISO string is read as wall-clock time in the source offset; anything
    else goes through :func:`normalize_timestamp`.
    """
    value = (value or "").strip()
    try:
        return parse_timestamp(value).isoformat()
    except ValueError:
        pass
    return normalize_timestamp(value, offset, now=now)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into an aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        raise ValueError(f"timestamp has no UTC offset: {value!r}")
    return parsed


def utc_iso_from_epoch(seconds: float) -> str:
    return datetime.fromtimestamp(seconds, tz=UTC).isoformat()


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def strip_html(markup: str) -> str:
    """Rough HTML tag stripping for listing and feed content."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", markup, flags=re.DOTALL | re.I)
    text = re.sub(r"<br\s*/?>", "\n", text, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)
    text = html.unescape(text).replace("\xa0", " ")
    text = re.sub(r"[ \t]+", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def clean_text(text: str) -> str:
    """Unescape entities and collapse all whitespace to single spaces."""
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit].rstrip()


# ---------------------------------------------------------------------------
# Category classification
# ---------------------------------------------------------------------------

# Ordered: the first matching rule wins. Inputs often match several.
CATEGORY_RULES: tuple[tuple[Category, tuple[str, ...]], ...] = (
    (Category.SEMINAR, ("세미나", "seminar", "웨비나", "webinar", "특강", "강연")),
    (
        Category.CONFERENCE,
        ("컨퍼런스", "콘퍼런스", "conference", "서밋", "summit", "포럼", "forum"),
    ),
    (
        Category.WORKSHOP,
        ("워크샵", "워크숍", "workshop", "핸즈온", "hands-on", "해커톤", "hackathon"),
    ),
    (
        Category.NETWORKING,
        ("네트워킹", "networking", "밋업", "meetup", "모임", "파티", "mixer"),
    ),
    (
        Category.STUDY,
        ("스터디", "study", "부트캠프", "bootcamp", "캠프", "교육과정", "course"),
    ),
)


def classify_category(text: str, tags: Iterable[str] = ()) -> Category:
    """Infer a category from free text plus tags using ordered keyword rules."""
    haystack = " ".join([text, *tags]).lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in haystack for keyword in keywords):
            return category
    return Category.OTHER


# ---------------------------------------------------------------------------
# Location / online / cost heuristics
# ---------------------------------------------------------------------------

ONLINE_MARKERS = (
    "온라인",
    "zoom",
    "화상",
    "비대면",
    "유튜브 라이브",
    "youtube live",
)

_REGION_RE = re.compile(
    r"(서울|부산|대구|인천|광주|대전|울산|세종|"
    r"경기|강원|충북|충남|전북|전남|경북|경남|제주)"
    r"[^\n<]{5,80}"
)

_FREE_RE = re.compile(r"무료|\bfree\b", re.I)
_KRW_RE = re.compile(r"(\d{1,3}(?:,\d{3})+|\d+)\s*원")
_USD_RE = re.compile(r"\$\s?(\d+(?:,\d{3})*(?:\.\d{2})?)")


def has_online_marker(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in ONLINE_MARKERS)


def infer_location(text: str, *, place: str | None = None, limit: int = 50) -> str:
    """Pick a location: explicit place → online → region address → unknown."""
    if place and place.strip():
        return truncate(clean_text(place), limit)
    if has_online_marker(text):
        return ONLINE_LOCATION
    match = _REGION_RE.search(text)
    if match:
        return truncate(clean_text(match.group(0)), limit)
    return LOCATION_UNKNOWN


def is_online(location: str | None) -> bool:
    if not location:
        return False
    return location == ONLINE_LOCATION or has_online_marker(location)


def infer_cost(text: str) -> str:
    """Pick a cost label: free → KRW price → USD price → unknown."""
    if _FREE_RE.search(text):
        return COST_FREE
    match = _KRW_RE.search(text)
    if match:
        return f"{match.group(1)}원"
    match = _USD_RE.search(text)
    if match:
        return f"${match.group(1)}"
    return COST_UNKNOWN


def cost_from_price(price: object) -> str:
    """Cost label from a structured price value (JSON-LD offers)."""
    if price is None or price == "":
        return COST_UNKNOWN
    try:
        amount = float(str(price).replace(",", ""))
    except ValueError:
        return infer_cost(str(price))
    if amount == 0:
        return COST_FREE
    return f"{int(amount):,}원" if amount.is_integer() else f"{amount:,.2f}원"
