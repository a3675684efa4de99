"""Chat export parsing and low-value message filtering.

Supports CSV/TSV exports (``date,user,message`` with an optional header)
and plain ``[date] user: message`` transcripts.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from collections.abc import Iterable

from gleaner.models import MessageRecord

logger = logging.getLogger(__name__)

MIN_MESSAGE_LENGTH = 5

SYSTEM_MESSAGE_PATTERNS = [
    re.compile(p)
    for p in (
        r"님이 들어왔습니다",
        r"님이 나갔습니다",
        r"님을 내보냈습니다",
        r"운영정책을 위반한 메시지",
        r"타인, 기관 등의 사칭에 유의",
        r"금전 또는 개인정보를 요구",
        r"카카오톡 이용에 제한",
        r"채팅방 관리자가 메시지를 가렸습니다",
        r"삭제된 메시지입니다",
        r"\bjoined the (?:chat|channel|group)\b",
        r"\bleft the (?:chat|channel|group)\b",
        r"^This message was deleted\.?$",
    )
]

LOW_VALUE_PATTERNS = [
    re.compile(p, re.I)
    for p in (
        r"^사진$",
        r"^사진 \d+장$",
        r"^동영상$",
        r"^이모티콘$",
        r"^스티커$",
        r"^음성메시지$",
        r"^파일\s?:",
        r"^<media omitted>$",
        r"^(ㅋ+|ㅎ+|ㄷ+|ㅜ+|ㅠ+|ㅇ+|ㄱ+)$",
        r"^(ㅋ+ㅎ+|ㅎ+ㅋ+)+$",
        r"^(ha)+h?$",
        r"^(lol)+$",
        r"^\.+$",
        r"^!+$",
        r"^\?+$",
        r"^~+$",
        r"^(네|넵|넹|응|엉|웅|ㅇㅇ|ㅇㅋ|ㅇㅇㅇ|ok|okay|ㄱㄱ|yes|yep|thanks|thx)$",
        r"^(감사합니다|감사해요|고마워요|ㄱㅅ|ㄱㅅㅇ)$",
        r"^https?://\S+$",
    )
]

_BRACKET_LINE_RE = re.compile(r"^\[([^\]]+)\]\s*([^:]+):\s*(.+)$")
_HEADER_WORDS = ("date", "user", "message")


def is_system_message(text: str) -> bool:
    return any(pattern.search(text) for pattern in SYSTEM_MESSAGE_PATTERNS)


def is_low_value(text: str) -> bool:
    """Media placeholders, laughter, one-word acks, bare links, tiny lines."""
    stripped = text.strip()
    if len(stripped) < MIN_MESSAGE_LENGTH:
        return True
    return any(pattern.search(stripped) for pattern in LOW_VALUE_PATTERNS)


def filter_for_analysis(messages: Iterable[MessageRecord]) -> list[MessageRecord]:
    """Keep only messages worth sending to the summarizer."""
    return [
        m for m in messages if not is_system_message(m.text.strip()) and not is_low_value(m.text)
    ]


def parse_chat_export(content: str) -> list[MessageRecord]:
    """Parse a chat export into chronological MessageRecords.

    Lines that match neither format are kept as author-less messages
    in bracketed transcripts; in CSV exports rows with fewer than three
    columns are dropped. System notices are always dropped.
    """
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        return []

    if _BRACKET_LINE_RE.match(lines[0].strip()):
        messages = _parse_transcript(lines)
    else:
        messages = _parse_delimited(lines)

    kept = [m for m in messages if not is_system_message(m.text)]
    logger.debug(
        "Parsed %d messages (%d system notices dropped)", len(kept), len(messages) - len(kept)
    )
    return kept


def _parse_transcript(lines: list[str]) -> list[MessageRecord]:
    messages: list[MessageRecord] = []
    for line in lines:
        match = _BRACKET_LINE_RE.match(line.strip())
        if match:
            timestamp, author, text = (part.strip() for part in match.groups())
            messages.append(MessageRecord(timestamp=timestamp, author=author, text=text))
        else:
            messages.append(MessageRecord(text=line.strip()))
    return messages


def _parse_delimited(lines: list[str]) -> list[MessageRecord]:
    delimiter = "\t" if "\t" in lines[0] else ","
    rows = list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))
    if rows and [cell.strip().lower() for cell in rows[0][:3]] == list(_HEADER_WORDS):
        rows = rows[1:]

    messages: list[MessageRecord] = []
    for row in rows:
        if len(row) < 3:
            continue
        timestamp, author = row[0].strip(), row[1].strip()
        text = delimiter.join(row[2:]).strip()
        if timestamp and author and text:
            messages.append(MessageRecord(timestamp=timestamp, author=author, text=text))
    return messages


def messages_to_text(messages: Iterable[MessageRecord]) -> str:
    """Render messages as ``[ts] author: text`` lines."""
    return "\n".join(m.render() for m in messages)
