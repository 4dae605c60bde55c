"""
L2 Resolver — HTTP access to the release registry.

The SINGLE PLACE where corekeeper talks HTTP.  JSON metadata, small
text assets (``version.txt``, checksum listings) and streamed artifact
downloads all go through ``RegistryClient`` so headers, timeouts and
error mapping stay consistent:

    HTTP status >= 400      → RegistryError (status + truncated body)
    DNS / TLS / socket      → NetworkError
    undecodable body        → ParseError
"""

from __future__ import annotations

import http.client
import json
import logging
import os
import urllib.error
import urllib.request
from typing import Any, Callable, Iterator

from corekeeper import __version__
from corekeeper.core.services.core_install.errors import (
    NetworkError,
    ParseError,
    RegistryError,
)

logger = logging.getLogger(__name__)

ACCEPT_JSON = "application/vnd.github+json"
USER_AGENT = f"corekeeper/{__version__}"
CHUNK_SIZE = 64 * 1024

_TRANSPORT_ERRORS = (urllib.error.URLError, http.client.HTTPException, OSError)


class RegistryClient:
    """Thin urllib wrapper with the registry's headers baked in.

    Args:
        token_env: Environment variable holding an optional bearer token.
            Read on every request so a token exported later is picked up.
        timeout: Socket timeout in seconds for every request.
        urlopen: Injection point for tests (defaults to ``urllib.request.urlopen``).
    """

    def __init__(
        self,
        *,
        token_env: str = "GITHUB_TOKEN",
        timeout: float = 30.0,
        urlopen: Callable[..., Any] | None = None,
    ) -> None:
        self._token_env = token_env
        self._timeout = timeout
        self._urlopen = urlopen or urllib.request.urlopen

    # ── Requests ────────────────────────────────────────────────

    def build_request(self, url: str) -> urllib.request.Request:
        req = urllib.request.Request(
            url,
            headers={"Accept": ACCEPT_JSON, "User-Agent": USER_AGENT},
        )
        token = os.environ.get(self._token_env, "").strip()
        if token:
            # Unredirected: asset downloads bounce to a signed storage URL
            # that rejects a second auth mechanism.
            req.add_unredirected_header("Authorization", f"Bearer {token}")
        return req

    def get_json(self, url: str, what: str) -> Any:
        """GET ``url`` and decode the body as JSON."""
        body = self._read_all(url, what)
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ParseError(f"Failed to parse {what} JSON: {e}") from e

    def get_text(self, url: str, what: str) -> str:
        """GET ``url`` and decode the body as UTF-8 text."""
        body = self._read_all(url, what)
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"Failed to read {what} as text: {e}") from e

    def iter_chunks(
        self, url: str, what: str, *, chunk_size: int = CHUNK_SIZE,
    ) -> Iterator[tuple[bytes, int | None]]:
        """Stream ``url`` in chunks.

        Yields ``(chunk, total)`` where ``total`` is the declared
        Content-Length, or None when the server does not send one.
        """
        response = self._open(url, what)
        with response:
            total = _content_length(response)
            logger.debug("Streaming %s from %s (length=%s)", what, url, total)
            while True:
                try:
                    chunk = response.read(chunk_size)
                except _TRANSPORT_ERRORS as e:
                    raise NetworkError(f"Download of {what} interrupted: {e}") from e
                if not chunk:
                    return
                yield chunk, total

    # ── Internals ───────────────────────────────────────────────

    def _open(self, url: str, what: str) -> Any:
        req = self.build_request(url)
        try:
            return self._urlopen(req, timeout=self._timeout)
        except urllib.error.HTTPError as e:
            body = _read_error_body(e)
            logger.debug("%s answered HTTP %s", url, e.code)
            raise RegistryError(what, e.code, body) from e
        except _TRANSPORT_ERRORS as e:
            reason = getattr(e, "reason", e)
            raise NetworkError(f"Request for {what} failed: {reason}") from e

    def _read_all(self, url: str, what: str) -> bytes:
        response = self._open(url, what)
        with response:
            try:
                return response.read()
            except _TRANSPORT_ERRORS as e:
                raise NetworkError(f"Reading {what} failed: {e}") from e


def _content_length(response: Any) -> int | None:
    headers = getattr(response, "headers", None)
    raw = headers.get("Content-Length") if headers is not None else None
    try:
        length = int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None
    return length if length and length > 0 else None


def _read_error_body(error: urllib.error.HTTPError) -> str:
    try:
        raw = error.read() or b""
    except _TRANSPORT_ERRORS:
        return ""
    return raw.decode("utf-8", errors="replace")
