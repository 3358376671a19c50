"""Unit tests for normalized stream records and field defaulting."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import pytest
from pydantic import ValidationError

from stream_resolver.models import (
    AudioStreamVariant,
    MediaStreamInfo,
    build_stream_info,
    normalize_stream_info,
    parse_variants,
)


def _variant(url: str = "https://x/a") -> AudioStreamVariant:
    return AudioStreamVariant(url=url)


class TestAudioStreamVariant:
    """Variant defaults and coercion."""

    def test_defaults(self) -> None:
        variant = _variant()
        assert variant.bitrate == 0
        assert variant.codec == ""
        assert variant.mime_type == "audio/unknown"
        assert variant.quality == ""
        assert variant.content_length == 0

    def test_url_is_mandatory(self) -> None:
        with pytest.raises(ValidationError):
            AudioStreamVariant.model_validate({"bitrate": 128})
        with pytest.raises(ValidationError):
            AudioStreamVariant(url="   ")

    def test_camel_case_keys_and_string_numbers(self) -> None:
        variant = AudioStreamVariant.model_validate(
            {"url": "https://x/a", "mimeType": "audio/webm", "contentLength": "", "bitrate": "128000"}
        )
        assert variant.mime_type == "audio/webm"
        assert variant.content_length == 0
        assert variant.bitrate == 128000

    def test_nulls_fall_back_to_defaults(self) -> None:
        variant = AudioStreamVariant.model_validate(
            {"url": "https://x/a", "codec": None, "mimeType": None}
        )
        assert variant.codec == ""
        assert variant.mime_type == "audio/unknown"

    def test_parse_variants_ignores_non_objects(self) -> None:
        assert parse_variants("nope") == []
        assert [v.url for v in parse_variants([1, {"url": "https://x/b"}])] == [
            "https://x/b"
        ]


class TestBuildStreamInfo:
    """Merging source metadata with extracted variants."""

    def test_full_piped_payload(self, piped_payload: dict[str, Any]) -> None:
        variants = parse_variants(piped_payload["audioStreams"])
        info = build_stream_info(piped_payload, variants, "PipedAPI")

        assert info.title == "Test Track"
        assert info.uploader == "Test Channel"
        assert info.uploader_url == "/channel/UC123"
        assert info.thumbnail_url == "https://img.example/thumb.jpg"
        assert info.duration == 213
        assert info.upload_date == "2024-03-01"
        assert (info.views, info.likes, info.dislikes) == (1000, 50, 2)
        assert info.hls == "https://cdn.example/master.m3u8"
        assert info.dash is None
        assert info.source == "PipedAPI"
        assert info.audio_streams == variants
        assert info.related_streams[0].title == "Next Track"

    def test_partial_payload_gets_defaults(self) -> None:
        info = build_stream_info({"status": "stream"}, [_variant()], "NewAPI")

        assert info.title == "Unknown Title"
        assert info.uploader == "Unknown Uploader"
        assert info.category == "Unknown"
        assert info.duration == 0
        assert info.views == 0
        assert info.livestream is False
        assert info.subtitles == []
        assert info.related_streams == []
        assert info.hls is None
        datetime.fromisoformat(info.upload_date)

    def test_alternate_metadata_keys(self) -> None:
        payload = {
            "author": "Someone",
            "authorUrl": "https://channel",
            "lengthSeconds": "95",
            "genre": "Podcast",
            "liveNow": True,
        }
        info = build_stream_info(payload, [_variant()], "Other")
        assert info.uploader == "Someone"
        assert info.uploader_url == "https://channel"
        assert info.duration == 95
        assert info.category == "Podcast"
        assert info.livestream is True

    def test_text_payload_contributes_no_metadata(self) -> None:
        info = build_stream_info("data: https://x/a", [_variant()], "YtdlOnlineAPI")
        assert info.title == "Unknown Title"
        assert info.source == "YtdlOnlineAPI"

    def test_payload_audio_streams_are_replaced_by_extracted_list(self) -> None:
        payload = {"audioStreams": [{"url": "https://x/raw"}], "source": "spoofed"}
        info = build_stream_info(payload, [_variant("https://x/chosen")], "A")
        assert [v.url for v in info.audio_streams] == ["https://x/chosen"]
        assert info.source == "A"

    def test_epoch_millisecond_upload_date(self) -> None:
        info = build_stream_info({"uploadDate": 1_700_000_000_000}, [_variant()], "A")
        assert info.upload_date.startswith("2023-11-14")

    def test_requires_at_least_one_variant(self) -> None:
        with pytest.raises(ValidationError):
            build_stream_info({"title": "x"}, [], "A")

    def test_mistyped_text_fields_use_defaults(self) -> None:
        payload = {
            "title": 42,
            "uploader": {"name": "nested"},
            "thumbnail": {"url": "https://img"},
            "category": ["Music"],
            "hls": 7,
            "uploadDate": True,
        }
        info = build_stream_info(payload, [_variant()], "A")
        assert info.title == "Unknown Title"
        assert info.uploader == "Unknown Uploader"
        assert info.thumbnail_url == ""
        assert info.category == "Unknown"
        assert info.hls is None
        datetime.fromisoformat(info.upload_date)

    def test_first_well_typed_alias_wins(self) -> None:
        info = build_stream_info({"uploader": 5, "author": "Fallback"}, [_variant()], "A")
        assert info.uploader == "Fallback"

    def test_string_flags_are_coerced(self) -> None:
        info = build_stream_info({"liveNow": "true"}, [_variant()], "A")
        assert info.livestream is True

    def test_malformed_entries_dropped_one_at_a_time(self) -> None:
        payload = {
            "relatedStreams": [
                {"url": "/watch?v=a", "title": "A"},
                42,
                {"url": "/watch?v=b", "duration": "n/a", "uploaderName": 3},
            ],
            "subtitles": [{"code": "en", "autoGenerated": "yes"}, None],
        }
        info = build_stream_info(payload, [_variant()], "A")
        assert [r.url for r in info.related_streams] == ["/watch?v=a", "/watch?v=b"]
        assert info.related_streams[1].duration == 0
        assert info.related_streams[1].uploader_name == ""
        assert [s.code for s in info.subtitles] == ["en"]
        assert info.subtitles[0].auto_generated is True


class TestNormalizeStreamInfo:
    """The defaulting pass is idempotent."""

    def test_idempotent_on_full_record(self, piped_payload: dict[str, Any]) -> None:
        info = build_stream_info(
            piped_payload, parse_variants(piped_payload["audioStreams"]), "PipedAPI"
        )
        once = normalize_stream_info(info)
        twice = normalize_stream_info(once)
        assert once == info
        assert twice == once

    def test_idempotent_on_defaulted_record(self) -> None:
        info = build_stream_info({}, [_variant()], "A")
        assert normalize_stream_info(normalize_stream_info(info)) == info

    def test_serialized_form_round_trips(self) -> None:
        info = build_stream_info({"title": "t"}, [_variant()], "A")
        dumped = info.model_dump(by_alias=True)
        assert "audioStreams" in dumped
        assert dumped["audioStreams"][0]["mimeType"] == "audio/unknown"
        assert MediaStreamInfo.model_validate(dumped) == info
