"""RPC health probes for a running node.

Three surfaces are checked against the selected network:

    Comet RPC     GET  /status                                  node_info.network
    Cosmos REST   GET  /cosmos/base/tendermint/v1beta1/node_info default_node_info.network
    EVM JSON-RPC  eth_chainId, eth_blockNumber (web3)           chain id

Each probe yields a PASS/FAIL result; a probe failure never raises.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import requests

from monoctl.errors import FetchError
from monoctl.models.network import (
    LOCALNET_EVM_CHAIN_ID,
    Network,
    NetworkName,
    is_localnet_leak,
    lookup,
)
from monoctl.models.peer import RPCEndpoints
from monoctl.net.fetcher import DEFAULT_TIMEOUT, Fetcher


logger = logging.getLogger(__name__)

NODE_INFO_PATH = "/cosmos/base/tendermint/v1beta1/node_info"

# (chain id, block number)
EVMProbe = Callable[[str, float], tuple[int, int]]


class CheckStatus(str, enum.Enum):
    PASS = "PASS"
    FAIL = "FAIL"


@dataclass(frozen=True)
class RPCCheckResult:
    endpoint: str
    type: str
    status: CheckStatus
    message: str = ""
    details: str = ""

    @property
    def passed(self) -> bool:
        return self.status == CheckStatus.PASS


@dataclass
class RPCCheckResults:
    network: str
    results: list[RPCCheckResult] = field(default_factory=list)

    @property
    def all_pass(self) -> bool:
        return all(r.passed for r in self.results)


@dataclass(frozen=True)
class NodeStatus:
    chain_id: str
    latest_height: int
    catching_up: bool
    peers_count: int
    moniker: str
    node_version: str


def web3_probe(endpoint: str, timeout: float = DEFAULT_TIMEOUT) -> tuple[int, int]:
    """Read ``eth_chainId`` and ``eth_blockNumber`` through web3.

    JSON-RPC error replies are re-raised as ValueError.
    """
    from web3 import Web3, HTTPProvider
    from web3.exceptions import Web3Exception

    w3 = Web3(HTTPProvider(endpoint, request_kwargs={"timeout": timeout}))
    try:
        return int(w3.eth.chain_id), int(w3.eth.block_number)
    except Web3Exception as e:
        raise ValueError(f"RPC error: {e}") from e


def _get_json(fetcher: Fetcher, url: str) -> dict:
    body = fetcher.fetch(url)
    try:
        doc = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ValueError(f"invalid JSON from {url}: {e}") from e
    if not isinstance(doc, dict):
        raise ValueError(f"unexpected JSON from {url}")
    return doc


def _dig(doc: dict, *path: str) -> Any:
    for key in path:
        if not isinstance(doc, dict):
            return None
        doc = doc.get(key)
    return doc


def check_comet_rpc(fetcher: Fetcher, endpoint: str, network: Network) -> RPCCheckResult:
    def fail(message: str) -> RPCCheckResult:
        return RPCCheckResult(endpoint, "Comet RPC", CheckStatus.FAIL, message)

    try:
        doc = _get_json(fetcher, endpoint.rstrip("/") + "/status")
    except (FetchError, ValueError) as e:
        return fail(str(e))
    chain = _dig(doc, "result", "node_info", "network") or ""
    height = _dig(doc, "result", "sync_info", "latest_block_height") or "0"
    if chain != network.cosmos_chain_id:
        return fail(f"chain id mismatch: expected {network.cosmos_chain_id}, got {chain or '<none>'}")
    return RPCCheckResult(
        endpoint, "Comet RPC", CheckStatus.PASS, details=f"chain={chain} height={height}"
    )


def check_cosmos_rest(fetcher: Fetcher, endpoint: str, network: Network) -> RPCCheckResult:
    def fail(message: str) -> RPCCheckResult:
        return RPCCheckResult(endpoint, "Cosmos REST", CheckStatus.FAIL, message)

    try:
        doc = _get_json(fetcher, endpoint.rstrip("/") + NODE_INFO_PATH)
    except (FetchError, ValueError) as e:
        return fail(str(e))
    chain = _dig(doc, "default_node_info", "network") or ""
    app = _dig(doc, "application_version", "app_name") or ""
    if chain != network.cosmos_chain_id:
        return fail(f"chain id mismatch: expected {network.cosmos_chain_id}, got {chain or '<none>'}")
    return RPCCheckResult(
        endpoint, "Cosmos REST", CheckStatus.PASS, details=f"network={chain} app={app}"
    )


def check_evm_rpc(
    endpoint: str,
    network: Network,
    probe: Optional[EVMProbe] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> RPCCheckResult:
    def fail(message: str) -> RPCCheckResult:
        return RPCCheckResult(endpoint, "EVM JSON-RPC", CheckStatus.FAIL, message)

    try:
        chain_id, block = (probe or web3_probe)(endpoint, timeout)
    except (requests.RequestException, ValueError, OSError) as e:
        return fail(f"{type(e).__name__}: {e}")

    if is_localnet_leak(network, chain_id):
        logger.error("Localnet EVM chain id served by %s for %s", endpoint, network.name.value)
        return fail(
            f"Localnet leak: chain ID {chain_id} ({LOCALNET_EVM_CHAIN_ID:#x}) on "
            f"{network.name.value}, expected {network.evm_chain_id}"
        )
    if chain_id != network.evm_chain_id:
        return fail(f"chain ID mismatch: expected {network.evm_chain_id}, got {chain_id}")
    return RPCCheckResult(
        endpoint, "EVM JSON-RPC", CheckStatus.PASS, details=f"chainId={chain_id:#x} block={block}"
    )


def check_rpc(
    network: Union[Network, NetworkName, str],
    endpoints: RPCEndpoints,
    fetcher: Fetcher,
    evm_probe: Optional[EVMProbe] = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> RPCCheckResults:
    """Probe all three surfaces. Empty endpoints are reported as FAIL."""
    net = network if isinstance(network, Network) else lookup(network)
    results = RPCCheckResults(network=net.name.value)

    for kind, endpoint in (
        ("Comet RPC", endpoints.comet_rpc),
        ("Cosmos REST", endpoints.cosmos_rest),
        ("EVM JSON-RPC", endpoints.evm_rpc),
    ):
        if not endpoint:
            results.results.append(
                RPCCheckResult("", kind, CheckStatus.FAIL, "no endpoint configured")
            )
            continue
        if kind == "Comet RPC":
            result = check_comet_rpc(fetcher, endpoint, net)
        elif kind == "Cosmos REST":
            result = check_cosmos_rest(fetcher, endpoint, net)
        else:
            result = check_evm_rpc(endpoint, net, evm_probe, timeout)
        logger.info("%s %s: %s", kind, endpoint, result.status.value)
        results.results.append(result)
    return results


def node_status(comet_rpc: str, fetcher: Fetcher) -> NodeStatus:
    """Summarize a node from Comet ``/status`` and ``/net_info``.

    Raises FetchError (or ValueError for a malformed reply) when
    ``/status`` cannot be read; a missing ``/net_info`` reports 0 peers.
    """
    base = comet_rpc.rstrip("/")
    doc = _get_json(fetcher, base + "/status")
    height_text = _dig(doc, "result", "sync_info", "latest_block_height") or "0"
    try:
        height = int(height_text)
    except (TypeError, ValueError):
        height = 0

    peers = 0
    try:
        net_info = _get_json(fetcher, base + "/net_info")
        peers = int(_dig(net_info, "result", "n_peers") or 0)
    except (FetchError, ValueError) as e:
        logger.warning("peer count unavailable: %s", e)

    return NodeStatus(
        chain_id=_dig(doc, "result", "node_info", "network") or "",
        latest_height=height,
        catching_up=bool(_dig(doc, "result", "sync_info", "catching_up")),
        peers_count=peers,
        moniker=_dig(doc, "result", "node_info", "moniker") or "",
        node_version=_dig(doc, "result", "node_info", "version") or "",
    )


def format_results(results: RPCCheckResults) -> str:
    lines = [f"RPC checks for {results.network}:"]
    for r in results.results:
        line = f"  [{r.status.value}] {r.type} {r.endpoint}"
        if r.details:
            line += f" {r.details}"
        if r.message:
            line += f": {r.message}"
        lines.append(line)
    return "\n".join(lines)


def format_node_status(status: Optional[NodeStatus]) -> str:
    if status is None:
        return "Node status unavailable"
    sync = "catching up" if status.catching_up else "in sync"
    return (
        f"Chain:    {status.chain_id}\n"
        f"Height:   {status.latest_height} ({sync})\n"
        f"Peers:    {status.peers_count}\n"
        f"Moniker:  {status.moniker}\n"
        f"Version:  {status.node_version}"
    )
