"""Shared fixtures: a Sprintnet genesis, its peer document, and a stub fetcher."""

import hashlib
import json
import logging
from pathlib import Path
from typing import Callable

import pytest

from monoctl.models.network import Network, lookup
from monoctl.net.fetcher import StubFetcher


SEED1 = "a" * 40 + "@seed1.sprintnet.mononodes.xyz:26656"
SEED2 = "e" * 40 + "@seed2.sprintnet.mononodes.xyz:26656"
PEER1 = "b" * 40 + "@10.0.0.1:26656"
PEER2 = "c" * 40 + "@10.0.0.2:26656"
BOOT1 = "d" * 40 + "@boot1.sprintnet.mononodes.xyz:26656"


def make_genesis(chain_id: str = "mono-sprint-1") -> bytes:
    doc = {
        "genesis_time": "2025-01-01T00:00:00Z",
        "chain_id": chain_id,
        "initial_height": "1",
        "app_state": {"bank": {"balances": []}},
    }
    return json.dumps(doc, indent=2).encode()


def make_peer_doc(
    chain_id: str = "mono-sprint-1",
    genesis_sha256: str | None = None,
    **fields,
) -> bytes:
    doc = {
        "chain_id": chain_id,
        "seeds": [SEED1, SEED2],
        "persistent_peers": [PEER1, PEER2],
        "bootstrap_peers": [BOOT1],
    }
    if genesis_sha256 is not None:
        doc["genesis_sha256"] = genesis_sha256
    doc.update(fields)
    return json.dumps(doc).encode()


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Drop handlers the CLI installs so none outlives a captured stream."""
    yield
    logger = logging.getLogger("monoctl")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def sprintnet() -> Network:
    return lookup("Sprintnet")


@pytest.fixture
def genesis_bytes() -> bytes:
    return make_genesis()


@pytest.fixture
def genesis_sha(genesis_bytes: bytes) -> str:
    return hashlib.sha256(genesis_bytes).hexdigest()


@pytest.fixture
def stub(sprintnet: Network, genesis_bytes: bytes, genesis_sha: str) -> StubFetcher:
    """Fetcher serving a valid Sprintnet genesis and a matching peer document."""
    return StubFetcher({
        sprintnet.default_genesis_url: genesis_bytes,
        sprintnet.default_peers_url: make_peer_doc(genesis_sha256=genesis_sha),
    })


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "node"


@pytest.fixture
def read_config(home: Path) -> Callable[[str], str]:
    def _read(name: str) -> str:
        return (home / "config" / name).read_text()
    return _read
