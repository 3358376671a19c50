"""stream-resolver: multi-source audio stream resolution with fallback."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("stream-resolver")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
