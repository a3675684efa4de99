"""Source fetch collaborator.

Adapters never talk to the network directly; they go through a
:class:`Fetcher` so tests can substitute canned responses.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from gleaner.config import DEFAULT_USER_AGENT, CrawlConfig
from gleaner.errors import FetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResponse:
    text: str
    status: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Fetcher(Protocol):
    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse: ...


class UrllibFetcher:
    """Blocking HTTP fetcher with a bounded per-call timeout."""

    def __init__(
        self,
        *,
        timeout: int = 30,
        user_agent: str = DEFAULT_USER_AGENT,
        accept_language: str = "ko-KR,ko;q=0.9,en;q=0.8",
    ) -> None:
        self._timeout = timeout
        self._default_headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": accept_language,
        }

    @classmethod
    def from_config(cls, config: CrawlConfig) -> UrllibFetcher:
        return cls(
            timeout=config.fetch_timeout,
            user_agent=config.user_agent,
            accept_language=config.accept_language,
        )

    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse:
        merged = {**self._default_headers, **(headers or {})}
        request = Request(url, headers=merged)  # noqa: S310
        logger.debug("GET %s", url)
        try:
            with urlopen(request, timeout=self._timeout) as response:  # noqa: S310
                charset = response.headers.get_content_charset() or "utf-8"
                body = response.read().decode(charset, errors="replace")
                return FetchResponse(text=body, status=response.status)
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            return FetchResponse(text=body, status=exc.code)
        except (URLError, TimeoutError, OSError) as exc:
            raise FetchError(f"Fetch failed for {url}: {exc}", url=url) from exc


def fetch_text(fetcher: Fetcher, url: str, headers: dict[str, str] | None = None) -> str:
    """Fetch ``url`` and return its body, raising FetchError on non-2xx."""
    response = fetcher.fetch(url, headers)
    if not response.ok:
        raise FetchError(f"HTTP {response.status}", url=url, status=response.status)
    return response.text


def fetch_json(fetcher: Fetcher, url: str) -> Any:
    """Fetch ``url`` and decode it as JSON."""
    text = fetch_text(fetcher, url, {"Accept": "application/json"})
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise FetchError(f"Invalid JSON from {url}: {exc}", url=url) from exc
