"""Config patch generator: the canonical values monoctl owns.

monoctl is the single writer for a closed set of canonical keys. The
patch always carries a value for every one of them, never a partial
overlay, so the writer and the doctor can treat an absent key on disk as
meaningful. Adding a key here adds a new drift surface; do it sparingly.

| canonical key      | file        | table  | on-disk key          |
|--------------------|-------------|--------|----------------------|
| cosmos_chain_id    | client.toml | (top)  | chain-id             |
| evm_chain_id       | app.toml    | evm    | evm-chain-id         |
| minimum_gas_prices | app.toml    | (top)  | minimum-gas-prices   |
| seeds              | config.toml | p2p    | seeds                |
| persistent_peers   | config.toml | p2p    | persistent_peers     |
| pex_enabled        | config.toml | p2p    | pex                  |
| external_address   | config.toml | p2p    | external_address     |
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from monoctl.core.peers import merge_peers
from monoctl.errors import BootstrapUnavailable, UnsupportedStrategy
from monoctl.models.network import Network
from monoctl.models.peer import Peer, PeerRegistry


logger = logging.getLogger(__name__)

Value = Union[str, int, bool]

CLIENT_TOML = "client.toml"
APP_TOML = "app.toml"
CONFIG_TOML = "config.toml"
TARGET_FILES = (CLIENT_TOML, APP_TOML, CONFIG_TOML)


class SyncStrategy(str, enum.Enum):
    """How the node finds peers.

    ``statesync`` is reserved: its canonical keys (trust height, trust
    hash) are not part of the key set, so it is refused rather than
    half-configured.
    """
    DEFAULT = "default"
    BOOTSTRAP = "bootstrap"


RESERVED_STRATEGIES = frozenset({"statesync"})


def parse_sync_strategy(text: str) -> SyncStrategy:
    lowered = text.strip().lower()
    if lowered in RESERVED_STRATEGIES:
        raise UnsupportedStrategy(f"sync strategy {lowered!r} is reserved and not supported")
    try:
        return SyncStrategy(lowered)
    except ValueError:
        valid = ", ".join(s.value for s in SyncStrategy)
        raise UnsupportedStrategy(f"unknown sync strategy {text!r} (valid: {valid})") from None


@dataclass(frozen=True)
class CanonicalKey:
    name: str
    file: str
    section: Optional[str]
    toml_key: str

    @property
    def location(self) -> str:
        table = f"[{self.section}] " if self.section else ""
        return f"{self.file} {table}{self.toml_key}"


CANONICAL_KEYS: tuple[CanonicalKey, ...] = (
    CanonicalKey("cosmos_chain_id", CLIENT_TOML, None, "chain-id"),
    CanonicalKey("evm_chain_id", APP_TOML, "evm", "evm-chain-id"),
    CanonicalKey("minimum_gas_prices", APP_TOML, None, "minimum-gas-prices"),
    CanonicalKey("seeds", CONFIG_TOML, "p2p", "seeds"),
    CanonicalKey("persistent_peers", CONFIG_TOML, "p2p", "persistent_peers"),
    CanonicalKey("pex_enabled", CONFIG_TOML, "p2p", "pex"),
    CanonicalKey("external_address", CONFIG_TOML, "p2p", "external_address"),
)

CANONICAL_KEY_NAMES = tuple(k.name for k in CANONICAL_KEYS)
PEER_KEYS = frozenset({"seeds", "persistent_peers"})


def canonical_key(name: str) -> CanonicalKey:
    for key in CANONICAL_KEYS:
        if key.name == name:
            return key
    raise KeyError(name)


def toml_literal(value: Value) -> str:
    """Render a value as a TOML literal (strings as basic strings)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return json.dumps(value)


@dataclass(frozen=True)
class ConfigPatch:
    """Complete canonical values for one (network, strategy, peers) input."""
    network: str
    sync_strategy: SyncStrategy
    cosmos_chain_id: str
    evm_chain_id: int
    minimum_gas_prices: str
    seeds: str
    persistent_peers: str
    pex_enabled: bool
    external_address: str = ""

    def value(self, name: str) -> Value:
        if name not in CANONICAL_KEY_NAMES:
            raise KeyError(name)
        return getattr(self, name)

    def literal(self, name: str) -> str:
        return toml_literal(self.value(name))

    def items(self) -> list[tuple[CanonicalKey, Value]]:
        return [(key, self.value(key.name)) for key in CANONICAL_KEYS]

    def for_file(self, file: str) -> list[tuple[CanonicalKey, str]]:
        return [(key, self.literal(key.name)) for key in CANONICAL_KEYS if key.file == file]

    def render(self) -> str:
        """Sidecar audit text: exactly what was written, as valid TOML.

        Deterministic (no timestamps) so an identical re-run produces an
        identical file.
        """
        lines = [
            f"# monoctl config patch for {self.network}",
            "# Canonical values written to the node home. Edit with monoctl, not by hand.",
            "",
            "[monoctl]",
            f"network = {toml_literal(self.network)}",
            f"sync_strategy = {toml_literal(self.sync_strategy.value)}",
            "",
            "[canonical]",
        ]
        for key, value in self.items():
            lines.append(f"# {key.location}")
            lines.append(f"{key.name} = {toml_literal(value)}")
        return "\n".join(lines) + "\n"


def apply_sync_strategy(
    strategy: SyncStrategy,
    registry: Optional[PeerRegistry],
) -> tuple[list[Peer], list[Peer]]:
    """Derive (seeds, persistent_peers) from a validated registry.

    Bootstrap promotes ``bootstrap_peers`` to persistent peers and drops
    seeds. With no bootstrap peers it falls back to the registry's
    persistent peers; with neither it raises BootstrapUnavailable.
    """
    seeds = list(registry.seeds) if registry else []
    persistent = list(registry.persistent_peers) if registry else []
    if strategy != SyncStrategy.BOOTSTRAP:
        return seeds, persistent

    bootstrap = list(registry.bootstrap_peers) if registry else []
    if not bootstrap:
        if not persistent:
            raise BootstrapUnavailable()
        logger.warning("no bootstrap_peers in registry, falling back to persistent_peers")
        bootstrap = persistent
    return [], bootstrap


def generate(
    network: Network,
    sync_strategy: SyncStrategy,
    seeds: Iterable[Peer],
    persistent_peers: Iterable[Peer],
    external_address: str = "",
) -> ConfigPatch:
    """Build the complete canonical patch.

    Peer lists are deduplicated with ``merge_peers`` and joined with ``,``
    in input order. Bootstrap drops seeds and disables peer exchange.
    """
    seed_list = merge_peers(seeds, [])
    peer_list = merge_peers(persistent_peers, [])
    pex_enabled = True
    if sync_strategy == SyncStrategy.BOOTSTRAP:
        seed_list = []
        pex_enabled = False

    return ConfigPatch(
        network=network.name.value,
        sync_strategy=sync_strategy,
        cosmos_chain_id=network.cosmos_chain_id,
        evm_chain_id=network.evm_chain_id,
        minimum_gas_prices=network.min_gas_price,
        seeds=",".join(str(p) for p in seed_list),
        persistent_peers=",".join(str(p) for p in peer_list),
        pex_enabled=pex_enabled,
        external_address=external_address,
    )
