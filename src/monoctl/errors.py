"""Error taxonomy for the onboarding pipeline.

Every error the orchestrator or doctor can meet is one of these kinds.
None of them escape the pipeline: each is captured as a failed step and
returned on the result, so the caller decides how loud to be.

``fatal`` marks errors that mean "wrong network or wrong artifact". A
fatal result must never be followed by a write, and maps to exit code 2.
"""

from __future__ import annotations

from typing import Optional


class MonoctlError(Exception):
    """Base class for all monoctl errors."""

    fatal: bool = False
    kind: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkUnknown(MonoctlError, LookupError):
    """Caller passed a network name outside the closed set."""

    kind = "network_unknown"

    def __init__(self, name: str) -> None:
        super().__init__(
            f"unknown network: {name} (valid: Localnet, Sprintnet, Testnet, Mainnet)"
        )
        self.name = name


class ConfigError(MonoctlError):
    """Invalid settings value (environment or .env file)."""

    kind = "config"


class UnsupportedStrategy(MonoctlError, ValueError):
    """Sync strategy that is reserved or unknown."""

    kind = "unsupported_strategy"


class FetchError(MonoctlError):
    """Artifact could not be retrieved."""

    kind = "fetch"

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"failed to fetch {url}: {message}")
        self.url = url


class FetchTimeout(FetchError):
    kind = "fetch_timeout"

    def __init__(self, url: str, timeout: float) -> None:
        super().__init__(url, f"timed out after {timeout:g}s")
        self.timeout = timeout


class FetchTransport(FetchError):
    kind = "fetch_transport"


class FetchHttpStatus(FetchError):
    kind = "fetch_http_status"

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(url, f"HTTP {status_code}")
        self.status_code = status_code


class InvalidGenesis(MonoctlError):
    """Genesis bytes do not parse or carry no chain id."""

    fatal = True
    kind = "invalid_genesis"


class PeerDocumentError(MonoctlError):
    """Peer document does not parse or carries a malformed field."""

    kind = "peer_document"


class ChainIdMismatch(MonoctlError):
    """Declared chain id differs from the selected network.

    Fatal when raised for genesis; the orchestrator downgrades it to a
    skipped step when it comes from the peer document.
    """

    kind = "chain_id_mismatch"

    def __init__(
        self,
        expected: str,
        got: str,
        source: str = "genesis",
        fatal: Optional[bool] = None,
    ) -> None:
        super().__init__(f"{source} chain_id mismatch: expected {expected}, got {got}")
        self.expected = expected
        self.got = got
        self.source = source
        self.fatal = (source == "genesis") if fatal is None else fatal


class DigestMismatch(MonoctlError):
    """Genesis SHA-256 differs from the trusted digest. Always fatal."""

    fatal = True
    kind = "digest_mismatch"

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(f"SHA256 mismatch: expected {expected}, got {got}")
        self.expected = expected
        self.got = got


class BootstrapUnavailable(MonoctlError):
    """Bootstrap strategy requested but no bootstrap or persistent peers known."""

    kind = "bootstrap_unavailable"

    def __init__(self) -> None:
        super().__init__(
            "bootstrap mode requires bootstrap_peers in the peer document (none found)"
        )


class PathTraversal(MonoctlError):
    """Home path is relative or climbs out with '..'."""

    kind = "path_traversal"

    def __init__(self, path: str) -> None:
        super().__init__(f"refusing node home {path!r}: must be an absolute path without '..'")
        self.path = path


class WriterIOError(MonoctlError):
    """File operation under the node home failed.

    The affected file is left exactly as it was before the call.
    """

    kind = "io"

    def __init__(self, io_kind: str, path: str, message: str) -> None:
        super().__init__(f"{io_kind} failed for {path}: {message}")
        self.io_kind = io_kind
        self.path = path


class Cancelled(MonoctlError):
    """Cooperative cancel observed between steps."""

    kind = "cancelled"

    def __init__(self, after_step: str) -> None:
        super().__init__(f"cancelled after step {after_step}")
        self.after_step = after_step


class DriftFatal(MonoctlError):
    """Home carries another network's identity; auto-repair refused."""

    fatal = True
    kind = "drift_fatal"
