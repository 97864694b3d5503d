"""Artifact fetcher: retrieves bytes from a URL with a bounded timeout.

The pipeline only sees the ``Fetcher`` protocol, so tests run offline
against ``StubFetcher``. ``HTTPFetcher`` is the production implementation.

No retries: retry policy belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

from monoctl.errors import FetchError, FetchHttpStatus, FetchTimeout, FetchTransport


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
USER_AGENT = "monoctl"


class Fetcher(Protocol):
    def fetch(self, url: str) -> bytes:
        """Return the body at ``url``. Raises FetchError."""
        ...


class HTTPFetcher:
    """Fetcher backed by a requests session.

    Only HTTP 200 counts as success. The timeout bounds both connect and
    read.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": USER_AGENT})

    def fetch(self, url: str) -> bytes:
        logger.debug("GET %s (timeout %ss)", url, self.timeout)
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.Timeout as e:
            raise FetchTimeout(url, self.timeout) from e
        except requests.RequestException as e:
            raise FetchTransport(url, f"{type(e).__name__}: {e}") from e

        if response.status_code != 200:
            raise FetchHttpStatus(url, response.status_code)
        return response.content


class StubFetcher:
    """In-memory fetcher for tests and offline runs.

    Unknown URLs raise ``FetchHttpStatus(404)``, matching what a real
    server would say about a missing artifact.
    """

    def __init__(
        self,
        responses: Optional[dict[str, bytes]] = None,
        errors: Optional[dict[str, FetchError]] = None,
    ) -> None:
        self.responses: dict[str, bytes] = dict(responses or {})
        self.errors: dict[str, FetchError] = dict(errors or {})
        self.calls: list[str] = []

    def add_response(self, url: str, data: bytes) -> None:
        self.responses[url] = data

    def add_error(self, url: str, error: FetchError) -> None:
        self.errors[url] = error

    def fetch(self, url: str) -> bytes:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.responses:
            return self.responses[url]
        raise FetchHttpStatus(url, 404)
