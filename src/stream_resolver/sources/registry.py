"""Build ``SourceAdapter`` instances from source definitions."""

from __future__ import annotations

from functools import partial
from typing import TYPE_CHECKING

from stream_resolver.exceptions import ConfigurationError
from stream_resolver.sources.base import ExtractFn, SourceAdapter, SourceKind
from stream_resolver.sources.extractors import (
    extract_fixed_bitrate,
    extract_link_list,
    extract_piped,
    extract_stream_ready,
    extract_url_list,
)
from stream_resolver.sources.fetchers import make_fetcher, render_body, render_template

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from stream_resolver.config import SourceSettings

_EXTRACTOR_FACTORIES: dict[SourceKind, Callable[[SourceSettings], ExtractFn]] = {
    SourceKind.PIPED: lambda _source: extract_piped,
    SourceKind.LINK_LIST: lambda source: partial(
        extract_link_list, audio_extension=source.audio_extension
    ),
    SourceKind.STREAM_READY: lambda _source: extract_stream_ready,
    SourceKind.FIXED_BITRATE: lambda source: partial(
        extract_fixed_bitrate,
        bitrate=source.fixed_bitrate,
        quality=source.fixed_quality,
    ),
    SourceKind.URL_LIST: lambda _source: extract_url_list,
}

# Kinds whose services answer with plain text rather than JSON
_TEXT_KINDS = frozenset({SourceKind.URL_LIST})


def build_adapter(source: SourceSettings) -> SourceAdapter:
    """Turn one source definition into an adapter.

    Templates are rendered once with a probe identifier so that typos
    surface at startup instead of on the first resolution.

    Raises:
        ConfigurationError: If the kind has no extractor or a template is invalid.
    """
    factory = _EXTRACTOR_FACTORIES.get(source.kind)
    if factory is None:
        msg = f"No extractor registered for source kind {source.kind!r}"
        raise ConfigurationError(msg)

    render_template(source.url, "probe")
    if source.body:
        render_body(source.body, "probe")

    return SourceAdapter(
        name=source.name,
        kind=source.kind,
        fetch=make_fetcher(source, as_text=source.kind in _TEXT_KINDS),
        extract=factory(source),
    )


def build_adapters(sources: Iterable[SourceSettings]) -> list[SourceAdapter]:
    """Build adapters for the enabled sources, preserving priority order."""
    return [build_adapter(source) for source in sources if source.enabled]
