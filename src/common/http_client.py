"""Shared HTTP transport used by remote package sources.

Encapsulates request/timeout error handling so source strategies only deal
with a readable byte stream or a ``TransportError``. This module is
dependency-light and can be imported by registry/* without cycles.
"""
from __future__ import annotations

import logging
from typing import Any, BinaryIO, Optional

import requests
import urllib3

from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

# Failures raised while a response body is still being read
_STREAM_ERRORS = (requests.RequestException, urllib3.exceptions.HTTPError, OSError)


class TransportError(Exception):
    """Raised when a URL could not be fetched.

    Attributes:
        url: Requested URL (unredacted; use ``safe_url`` before logging).
        status: HTTP status code, or None for connection-level failures.
    """

    def __init__(self, url: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status = status
        self.message = message

    @property
    def is_not_found(self) -> bool:
        """True when the server answered HTTP 404."""
        return self.status == requests.codes.not_found

    def __str__(self) -> str:
        if self.status is not None:
            return f"HTTP {self.status} for {safe_url(self.url)}: {self.message}"
        return f"{safe_url(self.url)}: {self.message}"


def request_url(
    url: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
    timeout: Optional[float] = None,
    **kwargs: Any,
) -> BinaryIO:
    """Perform a streaming GET request and return the response body stream.

    Args:
        url: Target URL.
        username: Optional user name for basic authentication.
        password: Optional password, only sent together with ``username``.
        timeout: Timeout in seconds, or None for no limit.
        **kwargs: Passed through to requests.get.

    Returns:
        A readable binary stream; closing it releases the connection. Read it
        through ``read_stream`` so mid-body failures surface as ``TransportError``.

    Raises:
        TransportError: on connection errors, timeouts and non-2xx responses.
    """
    safe_target = safe_url(url)
    auth = (username, password or "") if username else None
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    authenticated=bool(auth),
                ),
            )
        try:
            res = requests.get(url, auth=auth, timeout=timeout, stream=True, **kwargs)
        except requests.Timeout as exc:
            raise TransportError(url, f"request timed out after {timeout} seconds") from exc
        except requests.RequestException as exc:  # includes ConnectionError
            raise TransportError(url, f"connection error: {exc}") from exc

        if not res.ok:
            status, reason = res.status_code, res.reason
            res.close()
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response error",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        outcome="error",
                        status_code=status,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                    ),
                )
            raise TransportError(url, reason or "request failed", status=status)

        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response ok",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    outcome="success",
                    status_code=res.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target,
                ),
            )

    res.raw.decode_content = True
    return res.raw


def read_stream(url: str, stream: BinaryIO, size: int = -1) -> bytes:
    """Read from a response body returned by ``request_url``.

    Args:
        url: URL the stream was fetched from, used for error reporting.
        stream: Response body stream.
        size: Maximum number of bytes to read; -1 reads to the end.

    Raises:
        TransportError: when the connection breaks, times out or the body
            cannot be decoded mid-read.
    """
    try:
        return stream.read(size)
    except _STREAM_ERRORS as exc:
        raise TransportError(url, f"connection broken while reading response: {exc}") from exc
