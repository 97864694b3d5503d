"""Peer registry parser: turns an untrusted peer document into a PeerRegistry.

The document is fetched from a URL nobody vouches for, so nothing in it
is returned until all of these hold:
1. The bytes parse as a JSON object.
2. ``chain_id`` equals the caller's expected chain id (and
   ``evm_chain_id``, when the document declares one, equals the network's).
3. ``genesis_sha256``, when present, is a 64-character hex string.
4. Every peer matches ``node_id@host:port``. Malformed entries are
   dropped with a warning, never rewritten into something that matches.

Peers may be given as strings or as legacy ``{node_id, address, port}``
objects. Objects are rendered to the string form and then held to the
same pattern.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Optional

from monoctl.errors import ChainIdMismatch, PeerDocumentError
from monoctl.models.peer import Peer, PeerRegistry, RPCEndpoints


logger = logging.getLogger(__name__)

_SHA256_HEX = re.compile(r"^[0-9a-fA-F]{64}$")

_PEER_FIELDS = ("seeds", "peers", "persistent_peers", "bootstrap_peers")


def parse_peer_document(
    data: bytes,
    expected_chain_id: str,
    expected_evm_chain_id: Optional[int] = None,
) -> PeerRegistry:
    """Parse and validate a peer document.

    Raises PeerDocumentError for rules 1 and 3, ChainIdMismatch (non-fatal,
    source "peers") for rule 2.
    """
    try:
        doc = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise PeerDocumentError(f"failed to parse peer document: {e}") from e
    if not isinstance(doc, dict):
        raise PeerDocumentError("peer document must be a JSON object")

    chain_id = doc.get("chain_id")
    if not isinstance(chain_id, str) or not chain_id:
        raise PeerDocumentError("peer document missing chain_id")
    if chain_id != expected_chain_id:
        raise ChainIdMismatch(expected_chain_id, chain_id, source="peers")

    evm_chain_id = doc.get("evm_chain_id")
    if evm_chain_id is not None:
        if not isinstance(evm_chain_id, int) or isinstance(evm_chain_id, bool):
            raise PeerDocumentError(f"evm_chain_id must be an integer, got {evm_chain_id!r}")
        if expected_evm_chain_id is not None and evm_chain_id != expected_evm_chain_id:
            raise ChainIdMismatch(
                str(expected_evm_chain_id), str(evm_chain_id), source="peers evm"
            )

    genesis_sha = doc.get("genesis_sha256") or None
    if genesis_sha is not None:
        if not isinstance(genesis_sha, str) or not _SHA256_HEX.match(genesis_sha):
            raise PeerDocumentError(
                f"genesis_sha256 must be 64 hex characters, got {genesis_sha!r}"
            )
        genesis_sha = genesis_sha.lower()

    dropped: list[str] = []
    parsed: dict[str, list[Peer]] = {}
    for field_name in _PEER_FIELDS:
        parsed[field_name] = _parse_peer_list(doc.get(field_name), field_name, dropped)

    return PeerRegistry(
        chain_id=chain_id,
        genesis_sha256=genesis_sha,
        seeds=tuple(parsed["seeds"]),
        persistent_peers=tuple(merge_peers(parsed["peers"], parsed["persistent_peers"])),
        bootstrap_peers=tuple(parsed["bootstrap_peers"]),
        network_name=str(doc.get("network_name") or ""),
        evm_chain_id=evm_chain_id,
        genesis_url=str(doc.get("genesis_url") or ""),
        rpc_endpoints=_parse_rpc_endpoints(doc.get("rpc_endpoints")),
        dropped=tuple(dropped),
    )


def merge_peers(a: Iterable[Peer], b: Iterable[Peer]) -> list[Peer]:
    """Union of two peer lists: ``a`` in order, then new entries of ``b``.

    Duplicates are identified by node id; the first occurrence wins.
    """
    seen: set[str] = set()
    merged: list[Peer] = []
    for peer in list(a) + list(b):
        if peer.node_id in seen:
            continue
        seen.add(peer.node_id)
        merged.append(peer)
    return merged


def parse_peer_list_string(value: str) -> list[Peer]:
    """Parse a comma-separated config value. Malformed entries are skipped."""
    peers: list[Peer] = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        peer = Peer.parse(item)
        if peer is not None:
            peers.append(peer)
    return peers


def _parse_peer_list(raw: Any, field_name: str, dropped: list[str]) -> list[Peer]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise PeerDocumentError(f"{field_name} must be a list")

    peers: list[Peer] = []
    for i, element in enumerate(raw):
        text = _peer_text(element)
        peer = Peer.parse(text) if text is not None else None
        if peer is None:
            logger.warning("dropping malformed peer %s[%d]: %r", field_name, i, element)
            dropped.append(f"{field_name}[{i}]")
            continue
        peers.append(peer)
    return peers


def _peer_text(element: Any) -> Optional[str]:
    if isinstance(element, str):
        return element
    if isinstance(element, dict):
        node_id = element.get("node_id")
        address = element.get("address")
        port = element.get("port", 26656)
        if isinstance(node_id, str) and isinstance(address, str) and isinstance(port, int):
            return f"{node_id}@{address}:{port}"
    return None


def _parse_rpc_endpoints(raw: Any) -> Optional[RPCEndpoints]:
    if not isinstance(raw, dict):
        return None
    return RPCEndpoints(
        comet_rpc=str(raw.get("comet_rpc") or ""),
        cosmos_rest=str(raw.get("cosmos_rest") or ""),
        evm_rpc=str(raw.get("evm_rpc") or ""),
    )
