"""Shared pytest fixtures for the stream-resolver test suite."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
import structlog

from stream_resolver.resolver import StreamResolver
from stream_resolver.sources.base import SourceAdapter, SourceKind
from stream_resolver.sources.extractors import extract_piped

# ---------------------------------------------------------------------------
# Logging isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_structlog() -> None:
    """Reset structlog state between tests."""
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# Backoff timing
# ---------------------------------------------------------------------------


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(float(seconds))


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


# ---------------------------------------------------------------------------
# Fake adapters
# ---------------------------------------------------------------------------


class FakeSource:
    """Scripted fetch function that counts its calls.

    Each entry in ``outcomes`` is returned (or raised, if it is an
    exception) on successive calls; the last entry repeats.
    """

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes) or [None]
        self.calls: list[str] = []

    async def __call__(self, _client: httpx.AsyncClient, stream_id: str) -> Any:
        self.calls.append(stream_id)
        index = min(len(self.calls) - 1, len(self.outcomes) - 1)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_adapter(
    name: str,
    fetch: FakeSource,
    kind: SourceKind = SourceKind.PIPED,
    extract: Any = extract_piped,
) -> SourceAdapter:
    return SourceAdapter(name=name, kind=kind, fetch=fetch, extract=extract)


@pytest.fixture()
def fake_source() -> type[FakeSource]:
    return FakeSource


@pytest.fixture()
def adapter_factory() -> Any:
    return make_adapter


@pytest_asyncio.fixture()
async def resolver_factory(
    sleep_recorder: SleepRecorder,
) -> AsyncIterator[Callable[..., StreamResolver]]:
    """Build resolvers that share one client, closed after the test.

    Backoff waits go to ``sleep_recorder`` unless ``sleep`` is passed.
    """
    async with httpx.AsyncClient() as client:

        def build(adapters: list[SourceAdapter], **kwargs: Any) -> StreamResolver:
            kwargs.setdefault("sleep", sleep_recorder)
            return StreamResolver(adapters, client=client, **kwargs)

        yield build


@pytest.fixture()
def piped_payload() -> dict[str, Any]:
    """A trimmed Piped ``/streams`` response."""
    return {
        "title": "Test Track",
        "uploader": "Test Channel",
        "uploaderUrl": "/channel/UC123",
        "uploaderAvatar": "https://img.example/avatar.jpg",
        "thumbnailUrl": "https://img.example/thumb.jpg",
        "uploadDate": "2024-03-01",
        "duration": 213,
        "views": 1000,
        "likes": 50,
        "dislikes": 2,
        "category": "Music",
        "livestream": False,
        "hls": "https://cdn.example/master.m3u8",
        "dash": None,
        "audioStreams": [
            {
                "url": "https://cdn.example/a-high.webm",
                "bitrate": 160000,
                "codec": "opus",
                "contentLength": 3400000,
                "quality": "160 kbps",
                "mimeType": "audio/webm",
                "format": "WEBMA_OPUS",
            },
            {
                "url": "https://cdn.example/a-low.m4a",
                "bitrate": 48000,
                "codec": "mp4a.40.5",
                "contentLength": "1200000",
                "quality": "48 kbps",
                "mimeType": "audio/mp4",
                "format": "M4A",
            },
        ],
        "relatedStreams": [
            {
                "url": "/watch?v=next",
                "title": "Next Track",
                "uploaderName": "Other Channel",
                "uploaderUrl": "/channel/UC456",
                "thumbnail": "https://img.example/next.jpg",
                "duration": 180,
                "type": "stream",
            }
        ],
        "subtitles": [],
    }
