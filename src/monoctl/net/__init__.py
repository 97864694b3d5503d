"""Network transport: artifact fetching."""

from monoctl.net.fetcher import DEFAULT_TIMEOUT, Fetcher, HTTPFetcher, StubFetcher

__all__ = ["DEFAULT_TIMEOUT", "Fetcher", "HTTPFetcher", "StubFetcher"]
