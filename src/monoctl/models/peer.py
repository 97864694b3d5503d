"""Peer and peer-registry value types."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional


# node_id@host:port, node id is 40 lowercase hex characters
PEER_PATTERN = re.compile(r"^([0-9a-f]{40})@([^:]+):([0-9]+)$")


@dataclass(frozen=True)
class Peer:
    """A single peer address ``node_id@host:port``."""
    node_id: str
    host: str
    port: int

    @classmethod
    def parse(cls, text: str) -> Optional[Peer]:
        """Parse a peer string. Returns None if it does not match exactly."""
        match = PEER_PATTERN.match(text)
        if match is None:
            return None
        return cls(node_id=match.group(1), host=match.group(2), port=int(match.group(3)))

    def __str__(self) -> str:
        return f"{self.node_id}@{self.host}:{self.port}"


@dataclass(frozen=True)
class RPCEndpoints:
    """Public RPC endpoints advertised by a peer document."""
    comet_rpc: str = ""
    cosmos_rest: str = ""
    evm_rpc: str = ""


@dataclass(frozen=True)
class PeerRegistry:
    """A validated peer document.

    Only ever constructed by ``monoctl.core.peers.parse_peer_document``,
    after the chain id has been matched against the selected network.
    Lives for the duration of one pipeline run.
    """
    chain_id: str
    genesis_sha256: Optional[str] = None
    seeds: tuple[Peer, ...] = field(default_factory=tuple)
    persistent_peers: tuple[Peer, ...] = field(default_factory=tuple)
    bootstrap_peers: tuple[Peer, ...] = field(default_factory=tuple)
    network_name: str = ""
    evm_chain_id: Optional[int] = None
    genesis_url: str = ""
    rpc_endpoints: Optional[RPCEndpoints] = None
    dropped: tuple[str, ...] = field(default_factory=tuple)

    def summary(self) -> str:
        return (
            f"{len(self.seeds)} seeds, {len(self.persistent_peers)} peers, "
            f"{len(self.bootstrap_peers)} bootstrap"
        )
