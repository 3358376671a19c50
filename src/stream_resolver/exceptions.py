"""Centralized exception hierarchy for the stream-resolver package.

All domain-specific exceptions inherit from ``StreamResolverError`` so
callers can catch the entire family with a single ``except`` clause.
"""

from __future__ import annotations


class StreamResolverError(Exception):
    """Base exception for all stream-resolver errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(StreamResolverError):
    """Raised when a source definition cannot be turned into an adapter."""


# ---------------------------------------------------------------------------
# Per-source errors (recovered inside the resolver loop)
# ---------------------------------------------------------------------------


class SourceError(StreamResolverError):
    """Base exception for a single source adapter attempt."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source
        self.reason = message


class SourceTransportError(SourceError):
    """Raised on network, HTTP status, timeout, or undecodable body failures."""


class SourceValidationError(SourceError):
    """Raised when a payload does not yield any playable audio variant."""


# ---------------------------------------------------------------------------
# Resolution outcome errors (surfaced to the caller)
# ---------------------------------------------------------------------------


class ResolutionFailed(StreamResolverError):  # noqa: N818
    """Raised when every source failed in every round."""

    def __init__(
        self,
        stream_id: str,
        rounds: int,
        failures: list[tuple[str, str]] | None = None,
    ) -> None:
        super().__init__(
            f"All sources failed to provide valid data for {stream_id!r} "
            f"after {rounds} round(s)"
        )
        self.stream_id = stream_id
        self.rounds = rounds
        self.failures = failures or []


class ResolutionCancelled(StreamResolverError):  # noqa: N818
    """Raised when the caller stopped caring about the identifier mid-resolution."""

    def __init__(self, stream_id: str) -> None:
        super().__init__(f"Resolution of {stream_id!r} was abandoned by the caller")
        self.stream_id = stream_id
