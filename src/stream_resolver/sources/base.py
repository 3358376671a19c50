"""Source adapter contract.

A ``SourceAdapter`` is a tagged variant: it carries its own fetch function
*and* its own extractor, so the resolver never switches on source names.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import httpx

    from stream_resolver.models import AudioStreamVariant


class SourceKind(StrEnum):
    """Response shapes understood by the built-in extractors."""

    PIPED = "piped"
    LINK_LIST = "link_list"
    STREAM_READY = "stream_ready"
    FIXED_BITRATE = "fixed_bitrate"
    URL_LIST = "url_list"


FetchFn = Callable[["httpx.AsyncClient", str], Awaitable[Any]]
ExtractFn = Callable[[Any], "list[AudioStreamVariant]"]


@dataclass(frozen=True, slots=True)
class SourceAdapter:
    """One lookup service: how to fetch a payload and how to read it."""

    name: str
    kind: SourceKind
    fetch: FetchFn
    extract: ExtractFn

    def __repr__(self) -> str:
        return f"SourceAdapter(name={self.name!r}, kind={self.kind.value!r})"
