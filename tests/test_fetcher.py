"""Tests for the fetcher: status-code enforcement and error mapping, offline."""

import pytest
import requests

from monoctl.errors import FetchError, FetchHttpStatus, FetchTimeout, FetchTransport
from monoctl.net.fetcher import HTTPFetcher, StubFetcher


class _Response:
    def __init__(self, status_code: int, content: bytes = b"") -> None:
        self.status_code = status_code
        self.content = content


class _Session:
    """Stands in for requests.Session; replays one response or raises."""

    def __init__(self, response: _Response | None = None, error: Exception | None = None) -> None:
        self.headers: dict[str, str] = {}
        self.response = response
        self.error = error
        self.calls: list[tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> _Response:
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


class TestHTTPFetcher:
    def test_ok(self) -> None:
        session = _Session(_Response(200, b"{}"))
        fetcher = HTTPFetcher(timeout=5, session=session)
        assert fetcher.fetch("https://example.org/g.json") == b"{}"
        assert session.calls == [("https://example.org/g.json", 5)]
        assert session.headers["User-Agent"] == "monoctl"

    @pytest.mark.parametrize("code", [201, 204, 301, 404, 500])
    def test_only_200_is_success(self, code: int) -> None:
        fetcher = HTTPFetcher(session=_Session(_Response(code, b"body")))
        with pytest.raises(FetchHttpStatus) as exc:
            fetcher.fetch("https://example.org/x")
        assert exc.value.status_code == code
        assert f"HTTP {code}" in exc.value.message

    def test_timeout(self) -> None:
        fetcher = HTTPFetcher(timeout=2, session=_Session(error=requests.Timeout("slow")))
        with pytest.raises(FetchTimeout) as exc:
            fetcher.fetch("https://example.org/x")
        assert exc.value.timeout == 2
        assert "timed out after 2s" in exc.value.message

    def test_transport(self) -> None:
        fetcher = HTTPFetcher(session=_Session(error=requests.ConnectionError("refused")))
        with pytest.raises(FetchTransport) as exc:
            fetcher.fetch("https://example.org/x")
        assert "refused" in exc.value.message
        assert isinstance(exc.value, FetchError)

    def test_fetch_errors_are_not_fatal(self) -> None:
        assert not FetchTimeout("u", 1).fatal
        assert not FetchHttpStatus("u", 500).fatal

    def test_rejects_non_positive_timeout(self) -> None:
        with pytest.raises(ValueError):
            HTTPFetcher(timeout=0, session=_Session())


class TestStubFetcher:
    def test_serves_and_records(self) -> None:
        stub = StubFetcher({"u1": b"one"})
        assert stub.fetch("u1") == b"one"
        assert stub.calls == ["u1"]

    def test_unknown_url_is_404(self) -> None:
        with pytest.raises(FetchHttpStatus) as exc:
            StubFetcher().fetch("missing")
        assert exc.value.status_code == 404

    def test_configured_error(self) -> None:
        stub = StubFetcher()
        stub.add_error("u", FetchTimeout("u", 30))
        with pytest.raises(FetchTimeout):
            stub.fetch("u")
