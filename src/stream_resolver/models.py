"""Normalized stream records produced by the resolver.

Every source speaks its own JSON dialect. These models accept the
camelCase keys used by Piped-compatible APIs (plus a few alternates seen in
other services), treat ``None`` as "omitted", and fill every missing field
with a documented default so callers never see an undefined value.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

UNKNOWN_MIME_TYPE = "audio/unknown"
_TEXT_ANNOTATIONS = (str, str | None)


def _utc_now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _coerce_int(value: Any) -> int:
    """Best-effort integer coercion; unknown or malformed values become 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0
        try:
            return int(float(stripped))
        except ValueError:
            return 0
    return 0


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    if isinstance(value, bool | int | float):
        return bool(value)
    return False


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _input_keys(name: str, field: FieldInfo) -> list[str]:
    keys = [name]
    if isinstance(field.validation_alias, AliasChoices):
        keys.extend(c for c in field.validation_alias.choices if isinstance(c, str))
    elif isinstance(field.validation_alias, str):
        keys.append(field.validation_alias)
    return keys


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------


class _StreamModel(BaseModel):
    """Shared config: ignore unknown keys, treat ``None`` as missing.

    Optional text fields that arrive with the wrong type (a number for a
    title, an object for a thumbnail) are dropped so the field default
    applies. Fields listed in ``numeric_text_fields`` also accept numbers
    and convert them in their own validators.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    numeric_text_fields: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="before")
    @classmethod
    def _drop_unusable(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = {key: value for key, value in data.items() if value is not None}
        for name, field in cls.model_fields.items():
            if field.is_required() or field.annotation not in _TEXT_ANNOTATIONS:
                continue
            accepted = str if name not in cls.numeric_text_fields else str | int | float
            for key in _input_keys(name, field):
                if key in cleaned and not isinstance(cleaned[key], accepted):
                    logger.debug("metadata_defaulted", field=name, value=cleaned[key])
                    del cleaned[key]
        return cleaned


# ---------------------------------------------------------------------------
# Leaf records
# ---------------------------------------------------------------------------


class AudioStreamVariant(_StreamModel):
    """One playable encoding of the audio track."""

    url: str = Field(min_length=1, description="Direct, playable stream URL.")
    bitrate: int = Field(default=0, description="Bits per second; 0 when unknown.")
    codec: str = ""
    mime_type: str = Field(
        default=UNKNOWN_MIME_TYPE,
        validation_alias=_alias("mime_type", "mimeType"),
        serialization_alias="mimeType",
    )
    quality: str = ""
    content_length: int = Field(
        default=0,
        validation_alias=_alias("content_length", "contentLength"),
        serialization_alias="contentLength",
    )
    format: str = ""

    @field_validator("bitrate", "content_length", mode="before")
    @classmethod
    def _as_int(cls, value: Any) -> int:
        return _coerce_int(value)

    @field_validator("url", mode="before")
    @classmethod
    def _strip_url(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value


class RelatedStreamInfo(_StreamModel):
    """A suggested follow-up stream returned alongside the main one."""

    url: str = ""
    title: str = ""
    uploader_name: str = Field(
        default="",
        validation_alias=_alias("uploader_name", "uploaderName"),
        serialization_alias="uploaderName",
    )
    uploader_url: str = Field(
        default="",
        validation_alias=_alias("uploader_url", "uploaderUrl"),
        serialization_alias="uploaderUrl",
    )
    thumbnail: str = ""
    duration: int = 0
    type: str = "stream"

    @field_validator("duration", mode="before")
    @classmethod
    def _as_int(cls, value: Any) -> int:
        return _coerce_int(value)


class SubtitleTrack(_StreamModel):
    """Subtitle track metadata."""

    url: str = ""
    mime_type: str = Field(
        default="",
        validation_alias=_alias("mime_type", "mimeType"),
        serialization_alias="mimeType",
    )
    name: str = ""
    code: str = ""
    auto_generated: bool = Field(
        default=False,
        validation_alias=_alias("auto_generated", "autoGenerated"),
        serialization_alias="autoGenerated",
    )

    @field_validator("auto_generated", mode="before")
    @classmethod
    def _as_bool(cls, value: Any) -> bool:
        return _coerce_bool(value)


# ---------------------------------------------------------------------------
# Aggregate record
# ---------------------------------------------------------------------------


class MediaStreamInfo(_StreamModel):
    """Fully-populated resolution result.

    ``audio_streams`` always holds at least one variant: a record without a
    playable variant is never a valid resolution.
    """

    numeric_text_fields: ClassVar[frozenset[str]] = frozenset({"upload_date"})

    title: str = "Unknown Title"
    uploader: str = Field(
        default="Unknown Uploader", validation_alias=_alias("uploader", "author")
    )
    uploader_url: str = Field(
        default="",
        validation_alias=_alias("uploader_url", "uploaderUrl", "authorUrl"),
        serialization_alias="uploaderUrl",
    )
    uploader_avatar: str = Field(
        default="",
        validation_alias=_alias("uploader_avatar", "uploaderAvatar"),
        serialization_alias="uploaderAvatar",
    )
    thumbnail_url: str = Field(
        default="",
        validation_alias=_alias("thumbnail_url", "thumbnailUrl", "thumbnail"),
        serialization_alias="thumbnailUrl",
    )
    duration: int = Field(
        default=0,
        validation_alias=_alias("duration", "lengthSeconds"),
        description="Length in seconds.",
    )
    upload_date: str = Field(
        default_factory=_utc_now_iso,
        validation_alias=_alias("upload_date", "uploadDate"),
        serialization_alias="uploadDate",
    )
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    category: str = Field(
        default="Unknown", validation_alias=_alias("category", "genre")
    )
    livestream: bool = Field(
        default=False,
        validation_alias=_alias("livestream", "liveStream", "liveNow"),
    )
    subtitles: list[SubtitleTrack] = Field(default_factory=list)
    audio_streams: list[AudioStreamVariant] = Field(
        min_length=1,
        validation_alias=_alias("audio_streams", "audioStreams"),
        serialization_alias="audioStreams",
    )
    related_streams: list[RelatedStreamInfo] = Field(
        default_factory=list,
        validation_alias=_alias("related_streams", "relatedStreams"),
        serialization_alias="relatedStreams",
    )
    hls: str | None = None
    dash: str | None = None
    source: str = Field(default="", description="Name of the adapter that won.")

    @field_validator("duration", "views", "likes", "dislikes", mode="before")
    @classmethod
    def _as_int(cls, value: Any) -> int:
        return _coerce_int(value)

    @field_validator("livestream", mode="before")
    @classmethod
    def _as_bool(cls, value: Any) -> bool:
        return _coerce_bool(value)

    @field_validator("upload_date", mode="before")
    @classmethod
    def _as_date_string(cls, value: Any) -> Any:
        if isinstance(value, bool):
            return _utc_now_iso()
        if isinstance(value, int | float):
            # epoch milliseconds, as returned by some Piped instances
            seconds = value / 1000 if value > 1e11 else value
            try:
                return datetime.fromtimestamp(seconds, tz=UTC).isoformat()
            except (OverflowError, OSError, ValueError):
                return _utc_now_iso()
        return value

    @field_validator("subtitles", "related_streams", mode="before")
    @classmethod
    def _valid_entries(cls, value: Any, info: ValidationInfo) -> list[Any]:
        if not isinstance(value, list):
            return []
        model = _ENTRY_MODELS[info.field_name]
        entries: list[Any] = []
        for item in value:
            if isinstance(item, model):
                entries.append(item)
                continue
            if not isinstance(item, dict):
                continue
            try:
                entries.append(model.model_validate(item))
            except ValidationError:
                logger.debug("entry_dropped", field=info.field_name, entry=item)
        return entries


_ENTRY_MODELS: dict[str | None, type[_StreamModel]] = {
    "subtitles": SubtitleTrack,
    "related_streams": RelatedStreamInfo,
}


# ---------------------------------------------------------------------------
# Construction helpers
# ---------------------------------------------------------------------------


def parse_variants(entries: Any) -> list[AudioStreamVariant]:
    """Parse raw variant dicts, silently dropping entries without a URL."""
    if not isinstance(entries, list):
        return []

    variants: list[AudioStreamVariant] = []
    for entry in entries:
        if isinstance(entry, AudioStreamVariant):
            variants.append(entry)
            continue
        if not isinstance(entry, dict):
            continue
        try:
            variants.append(AudioStreamVariant.model_validate(entry))
        except ValidationError:
            logger.debug("variant_dropped", entry=entry)
    return variants


def build_stream_info(
    payload: Any,
    variants: list[AudioStreamVariant],
    source: str,
) -> MediaStreamInfo:
    """Merge source metadata with extracted variants into a defaulted record.

    Non-object payloads (plain-text sources) contribute no metadata.

    Mistyped metadata falls back to the field defaults, so only an empty
    ``variants`` list can make this fail.

    Raises:
        pydantic.ValidationError: If ``variants`` is empty.
    """
    metadata: dict[str, Any] = dict(payload) if isinstance(payload, dict) else {}
    for key in ("audioStreams", "audio_streams", "source"):
        metadata.pop(key, None)
    metadata["audio_streams"] = variants
    metadata["source"] = source
    return MediaStreamInfo.model_validate(metadata)


def normalize_stream_info(info: MediaStreamInfo) -> MediaStreamInfo:
    """Re-run the defaulting pass. Idempotent on already-normalized records."""
    return MediaStreamInfo.model_validate(info.model_dump())
