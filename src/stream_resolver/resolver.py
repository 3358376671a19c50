"""Multi-source stream resolution with linear round backoff.

Adapters are tried strictly one at a time in priority order. The first
adapter whose payload yields at least one playable audio variant wins and
no later adapter is consulted. When a whole round fails the resolver waits
``round * backoff_unit`` seconds (1 s, 2 s, ... by default) and starts over;
after the last round it gives up with ``ResolutionFailed``.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from stream_resolver.exceptions import (
    ResolutionCancelled,
    ResolutionFailed,
    SourceError,
    SourceTransportError,
    SourceValidationError,
)
from stream_resolver.logging import resolution_context
from stream_resolver.models import MediaStreamInfo, build_stream_info
from stream_resolver.sources.registry import build_adapters

if TYPE_CHECKING:
    from types import TracebackType

    from stream_resolver.config import Settings
    from stream_resolver.sources.base import SourceAdapter

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]
IsCurrentFn = Callable[[], bool]

_DEFAULT_ROUNDS = 3
_DEFAULT_TIMEOUT_SECONDS = 10.0
_DEFAULT_BACKOFF_UNIT_SECONDS = 1.0


class _RoundExhausted(Exception):  # noqa: N818
    """Internal signal: every adapter failed in the current round."""


class StreamResolver:
    """Resolve an identifier to a ``MediaStreamInfo`` via ordered fallbacks."""

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        *,
        client: httpx.AsyncClient | None = None,
        rounds: int = _DEFAULT_ROUNDS,
        timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS,
        backoff_unit_seconds: float = _DEFAULT_BACKOFF_UNIT_SECONDS,
        user_agent: str | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if not adapters:
            msg = "StreamResolver needs at least one source adapter"
            raise ValueError(msg)
        if rounds < 1:
            msg = f"rounds must be >= 1, got {rounds}"
            raise ValueError(msg)

        self._adapters = list(adapters)
        self._rounds = rounds
        self._timeout_seconds = timeout_seconds
        self._backoff_unit_seconds = backoff_unit_seconds
        self._sleep = sleep
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": user_agent} if user_agent else None,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> StreamResolver:
        """Build a resolver from the configured source table and limits."""
        return cls(
            build_adapters(settings.sources),
            client=client,
            rounds=settings.resolver.rounds,
            timeout_seconds=settings.resolver.timeout_seconds,
            backoff_unit_seconds=settings.resolver.backoff_unit_seconds,
            user_agent=settings.resolver.user_agent,
            **kwargs,
        )

    @property
    def adapters(self) -> list[SourceAdapter]:
        return list(self._adapters)

    async def aclose(self) -> None:
        """Close the HTTP client if this resolver created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> StreamResolver:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Resolution

    async def resolve(
        self,
        stream_id: str,
        *,
        is_current: IsCurrentFn | None = None,
    ) -> MediaStreamInfo:
        """Resolve ``stream_id`` to a normalized stream record.

        Args:
            stream_id: Opaque media identifier.
            is_current: Optional guard consulted before every adapter call
                and before every backoff wait. Returning ``False`` aborts
                the resolution. It is not consulted once the final round
                is exhausted, so exhaustion always ends in ``ResolutionFailed``.

        Returns:
            The record produced by the first adapter with playable audio.

        Raises:
            ResolutionFailed: Every adapter failed in every round.
            ResolutionCancelled: ``is_current`` returned ``False``.
        """
        failures: list[tuple[str, str]] = []

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._rounds),
            wait=wait_incrementing(
                start=self._backoff_unit_seconds,
                increment=self._backoff_unit_seconds,
            ),
            retry=retry_if_exception_type(_RoundExhausted),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        with resolution_context(stream_id) as log:
            try:
                async for attempt in retrying:
                    with attempt:
                        return await self._run_round(
                            stream_id,
                            attempt.retry_state.attempt_number,
                            failures,
                            is_current,
                        )
            except _RoundExhausted:
                log.error(
                    "resolution_failed", rounds=self._rounds, failures=len(failures)
                )
                raise ResolutionFailed(stream_id, self._rounds, failures) from None
            except ResolutionCancelled:
                log.info("resolution_cancelled")
                raise

        # AsyncRetrying either returns from the loop or raises
        raise ResolutionFailed(stream_id, self._rounds, failures)  # pragma: no cover

    async def _run_round(
        self,
        stream_id: str,
        round_number: int,
        failures: list[tuple[str, str]],
        is_current: IsCurrentFn | None,
    ) -> MediaStreamInfo:
        for adapter in self._adapters:
            self._ensure_current(stream_id, is_current)
            logger.info("source_attempt", source=adapter.name, round=round_number)
            try:
                info = await self._attempt(adapter, stream_id)
            except SourceValidationError as exc:
                failures.append((adapter.name, exc.reason))
                logger.info("source_invalid", source=adapter.name, reason=exc.reason)
                continue
            except SourceError as exc:
                failures.append((adapter.name, exc.reason))
                logger.warning("source_failed", source=adapter.name, error=exc.reason)
                continue
            except Exception as exc:
                reason = f"{exc.__class__.__name__}: {exc}"
                failures.append((adapter.name, reason))
                logger.warning("source_failed", source=adapter.name, error=reason)
                continue

            logger.info(
                "source_success",
                source=adapter.name,
                round=round_number,
                variants=len(info.audio_streams),
            )
            return info

        logger.info("round_exhausted", round=round_number, failures=len(failures))
        if round_number < self._rounds:
            # a backoff wait follows; skip it for an abandoned identifier
            self._ensure_current(stream_id, is_current)
        raise _RoundExhausted(f"round {round_number} exhausted")

    async def _attempt(self, adapter: SourceAdapter, stream_id: str) -> MediaStreamInfo:
        try:
            async with asyncio.timeout(self._timeout_seconds):
                payload = await adapter.fetch(self._client, stream_id)
        except TimeoutError as exc:
            msg = f"timed out after {self._timeout_seconds}s"
            raise SourceTransportError(adapter.name, msg) from exc

        variants = adapter.extract(payload)
        if not variants:
            raise SourceValidationError(adapter.name, "no playable audio variants")

        return build_stream_info(payload, variants, adapter.name)

    @staticmethod
    def _ensure_current(stream_id: str, is_current: IsCurrentFn | None) -> None:
        if is_current is not None and not is_current():
            raise ResolutionCancelled(stream_id)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.info(
            "round_backoff",
            round=retry_state.attempt_number,
            retry_in_seconds=delay,
        )


def create_resolver(
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
    **kwargs: Any,
) -> StreamResolver:
    """Build a resolver from ``settings`` (loaded from the environment if omitted)."""
    if settings is None:
        from stream_resolver.config import Settings

        settings = Settings.load()
    return StreamResolver.from_settings(settings, client=client, **kwargs)
