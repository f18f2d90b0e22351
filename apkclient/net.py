"""
HTTP capability helpers.

The HTTP capability is an injected httpx.AsyncClient; production builds
one from Settings, tests pass one wrapping httpx.MockTransport. This
module is the single place where httpx exceptions become TransportError.

http_get() reads the whole body and suits small documents such as keys;
http_stream() leaves the body unread so package archives can be copied
to disk chunk by chunk.
"""

from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Dict, Optional

import httpx

from .config import Settings
from .errors import TransportError

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> httpx.AsyncClient:
    """Build the default HTTP client for settings."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout),
        follow_redirects=True,
    )


def is_remote(uri: str) -> bool:
    """Whether uri must be fetched over HTTP."""
    return uri.lower().startswith(("http://", "https://"))


async def http_get(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    allow_not_modified: bool = False,
) -> httpx.Response:
    """GET url and return the fully read response.

    Args:
        client: HTTP capability
        url: URL to fetch
        headers: Extra request headers (e.g. If-None-Match)
        allow_not_modified: Treat 304 as a valid answer

    Returns:
        The response, body already read

    Raises:
        TransportError: On network failure or a non-success status
    """
    try:
        response = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise TransportError(f"GET {url} failed: {e}", url=url) from e

    _check_status(response, url, allow_not_modified)
    logger.debug(
        "Fetched URL",
        extra={"url": url, "status_code": response.status_code, "bytes": len(response.content)},
    )
    return response


def _check_status(response: httpx.Response, url: str, allow_not_modified: bool) -> None:
    if response.status_code == httpx.codes.NOT_MODIFIED and allow_not_modified:
        return
    if not response.is_success:
        raise TransportError(
            f"GET {url} returned {response.status_code} {response.reason_phrase}",
            url=url,
            status_code=response.status_code,
        )


@contextlib.asynccontextmanager
async def http_stream(
    client: httpx.AsyncClient,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    allow_not_modified: bool = False,
) -> AsyncIterator[httpx.Response]:
    """GET url and yield the response with its body still unread.

    Errors raised while the caller reads the body (response.aiter_bytes())
    are translated as well.

    Args:
        client: HTTP capability
        url: URL to fetch
        headers: Extra request headers (e.g. If-None-Match)
        allow_not_modified: Treat 304 as a valid answer

    Yields:
        The streaming response

    Raises:
        TransportError: On network failure or a non-success status
    """
    try:
        async with client.stream("GET", url, headers=headers) as response:
            _check_status(response, url, allow_not_modified)
            logger.debug("Streaming URL", extra={"url": url, "status_code": response.status_code})
            yield response
    except httpx.HTTPError as e:
        raise TransportError(f"GET {url} failed: {e}", url=url) from e
