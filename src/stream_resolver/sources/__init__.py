"""Source adapter exports."""

from stream_resolver.sources.base import SourceAdapter, SourceKind

__all__ = [
    "SourceAdapter",
    "SourceKind",
]
