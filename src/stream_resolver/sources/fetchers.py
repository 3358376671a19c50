"""HTTP fetch functions built from source definitions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx
import structlog

from stream_resolver.exceptions import ConfigurationError, SourceTransportError

if TYPE_CHECKING:
    from stream_resolver.config import SourceSettings
    from stream_resolver.sources.base import FetchFn

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={id}"


def template_values(stream_id: str) -> dict[str, str]:
    """Placeholder values available to URL and body templates."""
    watch_url = WATCH_URL_TEMPLATE.format(id=stream_id)
    return {
        "id": quote(stream_id, safe=""),
        "watch_url": watch_url,
        "watch_url_encoded": quote(watch_url, safe=""),
    }


def render_template(template: str, stream_id: str) -> str:
    """Substitute placeholders in ``template``.

    Raises:
        ConfigurationError: If the template references an unknown placeholder.
    """
    try:
        return template.format(**template_values(stream_id))
    except (KeyError, IndexError, ValueError) as exc:
        msg = f"Invalid template {template!r}: {exc}"
        raise ConfigurationError(msg) from exc


def render_body(body: Any, stream_id: str) -> Any:
    """Recursively render string leaves of a JSON body template."""
    if isinstance(body, str):
        return render_template(body, stream_id)
    if isinstance(body, dict):
        return {key: render_body(value, stream_id) for key, value in body.items()}
    if isinstance(body, list):
        return [render_body(item, stream_id) for item in body]
    return body


def make_fetcher(source: SourceSettings, *, as_text: bool = False) -> FetchFn:
    """Create the fetch function for one source.

    The returned coroutine raises ``SourceTransportError`` for every network
    or HTTP failure and for bodies that are not valid JSON (unless
    ``as_text`` is set, in which case the raw body is returned).
    """
    name = source.name
    headers = dict(source.headers)

    async def _fetch(client: httpx.AsyncClient, stream_id: str) -> Any:
        url = render_template(source.url, stream_id)
        try:
            if source.method == "POST":
                body = render_body(source.body, stream_id) if source.body else None
                response = await client.post(url, headers=headers, json=body)
            else:
                response = await client.get(url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"HTTP error! status: {exc.response.status_code}"
            raise SourceTransportError(name, msg) from exc
        except httpx.HTTPError as exc:
            msg = f"{exc.__class__.__name__}: {exc}"
            raise SourceTransportError(name, msg) from exc

        if as_text:
            return response.text

        try:
            return response.json()
        except ValueError as exc:
            raise SourceTransportError(name, "response body is not valid JSON") from exc

    return _fetch
