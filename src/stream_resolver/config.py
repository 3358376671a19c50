"""Configuration with layered resolution: defaults -> YAML -> env -> init.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``STREAM_RESOLVER_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields.

The ordered ``sources`` list is configuration, not code: deployments can
reorder, disable, or add lookup services without touching the resolver.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from stream_resolver.sources.base import SourceKind

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0"
)


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class ResolverSettings(BaseModel):
    """Retry loop and per-call limits."""

    rounds: int = Field(default=3, ge=1, le=10)
    timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Per-adapter call timeout in seconds."
    )
    backoff_unit_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Delay after failed round k is k * this value.",
    )
    user_agent: str = _DEFAULT_USER_AGENT


class SourceSettings(BaseModel):
    """One lookup service definition.

    ``url`` and string values inside ``body`` are templates; ``{id}``,
    ``{watch_url}`` and ``{watch_url_encoded}`` are substituted per request.
    """

    name: str = Field(min_length=1)
    kind: SourceKind
    url: str = Field(min_length=1)
    method: Literal["GET", "POST"] = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: dict[str, Any] | None = None
    enabled: bool = True

    audio_extension: str = Field(
        default="weba", description="Container tag kept by link-list sources."
    )
    fixed_bitrate: int = Field(
        default=8000, ge=0, description="Bitrate reported by fixed-bitrate sources."
    )
    fixed_quality: str = Field(
        default="8 kbps", description="Quality label for fixed-bitrate sources."
    )

    @field_validator("method", mode="before")
    @classmethod
    def _upper_method(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


def default_sources() -> list[SourceSettings]:
    """Built-in source table, most reliable first."""
    return [
        SourceSettings(
            name="PipedAPI",
            kind=SourceKind.PIPED,
            url="https://pipedapi.reallyaweso.me/streams/{id}",
        ),
        SourceSettings(
            name="SecondPipedAPI",
            kind=SourceKind.PIPED,
            url="https://pipedapi.adminforge.de/streams/{id}",
        ),
        SourceSettings(
            name="AceThinkerAPI",
            kind=SourceKind.LINK_LIST,
            url=(
                "https://www.acethinker.com/downloader/api/video_info.php"
                "?url={watch_url_encoded}&israpid=1&ismp3=0"
            ),
            audio_extension="weba",
        ),
        SourceSettings(
            name="NewAPI",
            kind=SourceKind.STREAM_READY,
            url="https://kityune.imput.net/api/json?id={id}",
        ),
        SourceSettings(
            name="CobaltAPI",
            kind=SourceKind.FIXED_BITRATE,
            url="https://api.cobalt.tools/api/json",
            method="POST",
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            body={
                "url": "{watch_url}",
                "aFormat": "mp3",
                "isAudioOnly": True,
                "audioBitrate": 8000,
            },
            fixed_bitrate=8000,
            fixed_quality="8 kbps",
        ),
        SourceSettings(
            name="YtdlOnlineAPI",
            kind=SourceKind.URL_LIST,
            url=(
                "https://api.allorigins.win/raw?url=https://ytdlp.online/stream"
                "?command={watch_url} --get-url"
            ),
        ),
    ]


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (layered resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``config.yaml`` or an explicit path)
        3. Environment variables (prefixed ``STREAM_RESOLVER_``)
        4. Programmatic overrides passed to ``Settings.load``
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAM_RESOLVER_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="config.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    sources: list[SourceSettings] = Field(default_factory=default_sources)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("sources")
    @classmethod
    def _unique_names(cls, value: list[SourceSettings]) -> list[SourceSettings]:
        seen: set[str] = set()
        for source in value:
            if source.name in seen:
                msg = f"Duplicate source name: {source.name!r}"
                raise ValueError(msg)
            seen.add(source.name)
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings > env_settings > dotenv (.env) > yaml > defaults
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "config.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with an optional config path and overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)
