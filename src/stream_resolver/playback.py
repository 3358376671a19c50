"""Caller-side glue between the resolver and a playback UI.

The resolver knows nothing about players or notifications. Callers that do
have a UI pass a ``PlaybackHooks`` implementation to ``resolve_for_playback``,
which only touches the UI when the identifier is still the one the user is
waiting for.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from stream_resolver.exceptions import ResolutionCancelled, ResolutionFailed

if TYPE_CHECKING:
    from stream_resolver.models import MediaStreamInfo
    from stream_resolver.resolver import StreamResolver

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

FAILURE_MESSAGE = "Could not retrieve stream data in any way. Please try again later."


@runtime_checkable
class PlaybackHooks(Protocol):
    """What ``resolve_for_playback`` needs from the application."""

    def current_stream_id(self) -> str | None:
        """Identifier the user currently wants to hear, if any."""
        ...

    def set_idle(self) -> None:
        """Put the play control back into its idle visual state."""
        ...

    def notify(self, message: str) -> None:
        """Show a user-facing message."""
        ...


@runtime_checkable
class AppliesStreamInfo(Protocol):
    """Optional extension: hooks that want the resolved record written back."""

    def apply(self, info: MediaStreamInfo) -> None: ...


def _is_current(hooks: PlaybackHooks, stream_id: str) -> bool:
    return hooks.current_stream_id() == stream_id


async def resolve_for_playback(
    resolver: StreamResolver,
    stream_id: str,
    hooks: PlaybackHooks,
) -> MediaStreamInfo | None:
    """Resolve ``stream_id`` on behalf of a UI.

    Returns:
        The resolved record, or ``None`` when the user moved on to another
        identifier before (or while) it resolved.

    Raises:
        ResolutionFailed: Re-raised after the idle reset and notification
            (which only happen if ``stream_id`` is still current).
    """
    try:
        info = await resolver.resolve(
            stream_id, is_current=lambda: _is_current(hooks, stream_id)
        )
    except ResolutionCancelled:
        return None
    except ResolutionFailed:
        if _is_current(hooks, stream_id):
            hooks.set_idle()
            hooks.notify(FAILURE_MESSAGE)
        else:
            logger.info("stale_failure_ignored", stream_id=stream_id)
        raise

    if not _is_current(hooks, stream_id):
        logger.info("stale_result_discarded", stream_id=stream_id)
        return None

    if isinstance(hooks, AppliesStreamInfo):
        try:
            hooks.apply(info)
        except Exception as exc:
            logger.warning(
                "playback_apply_failed", stream_id=stream_id, error=str(exc)
            )
    return info
