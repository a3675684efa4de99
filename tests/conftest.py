"""Shared fakes for the fetch and summarization collaborators."""

from __future__ import annotations

import threading
from collections.abc import Callable

import pytest

from gleaner.fetch import FetchResponse
from gleaner.ratelimit import RateLimiter, no_delay_limiter


class FakeFetcher:
    """Serves canned bodies by URL; unknown URLs are 404s."""

    def __init__(self) -> None:
        self._routes: dict[str, FetchResponse | Exception] = {}
        self._lock = threading.Lock()
        self.calls: list[str] = []

    def add(self, url: str, text: str = "", status: int = 200) -> None:
        self._routes[url] = FetchResponse(text=text, status=status)

    def fail(self, url: str, exc: Exception) -> None:
        self._routes[url] = exc

    def fetch(self, url: str, headers: dict[str, str] | None = None) -> FetchResponse:
        with self._lock:
            self.calls.append(url)
        route = self._routes.get(url)
        if route is None:
            return FetchResponse(text="not found", status=404)
        if isinstance(route, Exception):
            raise route
        return route


class FakeSummarizer:
    """Answers each call through ``handler(prompt, schema_hint, label)``."""

    def __init__(self, handler: Callable[[str, str, str], str], model: str | None = "fake") -> None:
        self._handler = handler
        self.model = model
        self.calls: list[tuple[str, str]] = []

    def summarize(self, prompt: str, schema_hint: str, *, label: str = "synthesis") -> str:
        self.calls.append((label, prompt))
        return self._handler(prompt, schema_hint, label)


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def limiter() -> RateLimiter:
    return no_delay_limiter()


@pytest.fixture
def make_summarizer() -> type[FakeSummarizer]:
    return FakeSummarizer
