"""Per-source extraction rules.

Each function turns one service's raw payload into the list of playable
audio variants it advertises. An empty list means the payload is unusable;
the resolver decides what to do about that.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stream_resolver.models import UNKNOWN_MIME_TYPE, AudioStreamVariant, parse_variants

if TYPE_CHECKING:
    from collections.abc import Iterator

_DATA_PREFIX = "data:"

# Container tag -> mime type for link-list services
_EXTENSION_MIME_TYPES: dict[str, str] = {
    "weba": "audio/webm",
    "webm": "audio/webm",
    "m4a": "audio/mp4",
    "mp4a": "audio/mp4",
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "ogg": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}


def mime_type_for_extension(extension: str) -> str:
    """Infer a mime type from a container tag, ``audio/unknown`` if unmapped."""
    return _EXTENSION_MIME_TYPES.get(extension.lower().lstrip("."), UNKNOWN_MIME_TYPE)


# ---------------------------------------------------------------------------
# Piped-compatible APIs
# ---------------------------------------------------------------------------


def extract_piped(payload: Any) -> list[AudioStreamVariant]:
    """Use ``audioStreams`` as published."""
    if not isinstance(payload, dict):
        return []
    return parse_variants(payload.get("audioStreams"))


# ---------------------------------------------------------------------------
# Link-list APIs
# ---------------------------------------------------------------------------


def _flatten_once(items: Any) -> Iterator[Any]:
    if not isinstance(items, list):
        return
    for item in items:
        if isinstance(item, list):
            yield from item
        else:
            yield item


def extract_link_list(
    payload: Any, audio_extension: str = "weba"
) -> list[AudioStreamVariant]:
    """Keep links tagged with the audio container; drop everything else."""
    if not isinstance(payload, dict):
        return []

    wanted = audio_extension.lower().lstrip(".")
    mime_type = mime_type_for_extension(wanted)
    entries: list[dict[str, Any]] = []
    for link in _flatten_once(payload.get("links")):
        if not isinstance(link, dict):
            continue
        extension = str(link.get("ext") or "").lower().lstrip(".")
        if extension != wanted:
            continue
        entries.append(
            {
                "url": link.get("url"),
                "bitrate": 0,
                "codec": "",
                "content_length": 0,
                "quality": "",
                "mime_type": mime_type,
            }
        )
    return parse_variants(entries)


# ---------------------------------------------------------------------------
# Single-URL "stream ready" APIs
# ---------------------------------------------------------------------------


def extract_stream_ready(payload: Any) -> list[AudioStreamVariant]:
    """Exactly one variant when the service reports a ready stream."""
    if not isinstance(payload, dict):
        return []
    if payload.get("status") != "stream" or not payload.get("url"):
        return []
    return parse_variants([{"url": payload["url"], "mime_type": UNKNOWN_MIME_TYPE}])


# ---------------------------------------------------------------------------
# Fixed-bitrate conversion APIs
# ---------------------------------------------------------------------------


def extract_fixed_bitrate(
    payload: Any, bitrate: int = 8000, quality: str = "8 kbps"
) -> list[AudioStreamVariant]:
    """One variant tagged with the service's only output bitrate."""
    if not isinstance(payload, dict):
        return []
    url = payload.get("audio") or payload.get("url")
    if not url:
        return []
    return parse_variants(
        [
            {
                "url": url,
                "bitrate": bitrate,
                "quality": quality,
                "mime_type": "audio/mp3",
            }
        ]
    )


# ---------------------------------------------------------------------------
# URL-list scraping APIs
# ---------------------------------------------------------------------------


def parse_data_lines(text: str) -> list[str]:
    """Return the absolute URLs announced on ``data:`` lines, in order."""
    urls: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped.startswith(_DATA_PREFIX):
            continue
        candidate = stripped[len(_DATA_PREFIX) :].strip()
        if candidate.startswith("http"):
            urls.append(candidate)
    return urls


def extract_url_list(payload: Any) -> list[AudioStreamVariant]:
    """One unknown-quality variant per announced URL.

    Accepts the raw text body, or an already-parsed ``{"urls": [...]}``.
    """
    if isinstance(payload, str):
        urls = parse_data_lines(payload)
    elif isinstance(payload, dict) and isinstance(payload.get("urls"), list):
        urls = [url for url in payload["urls"] if isinstance(url, str)]
    else:
        return []
    return parse_variants([{"url": url} for url in urls])
