"""Network registry: the closed set of networks a node can join.

The set is fixed at import time. Nothing can add a network at runtime,
which is what lets the doctor enumerate every foreign EVM chain id when
it looks for a leaked identity.

Invariants (checked by ``_check_registry`` on import):
- No two networks share a Cosmos chain id.
- No two networks share an EVM chain id.
- The Localnet EVM chain id is never used by a public network.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from monoctl.errors import DriftFatal, NetworkUnknown


LOCALNET_EVM_CHAIN_ID = 262145


class NetworkName(str, enum.Enum):
    """Canonical network display names."""
    LOCALNET = "Localnet"
    SPRINTNET = "Sprintnet"
    TESTNET = "Testnet"
    MAINNET = "Mainnet"


@dataclass(frozen=True)
class Network:
    """Identity of one network. Process-wide immutable value."""
    name: NetworkName
    cosmos_chain_id: str
    evm_chain_id: int
    default_genesis_url: str = ""
    default_peers_url: str = ""
    min_gas_price: str = "0alyth"
    seed_dns: tuple[str, ...] = field(default_factory=tuple)

    @property
    def evm_chain_id_hex(self) -> str:
        return f"0x{self.evm_chain_id:x}"

    @property
    def is_localnet(self) -> bool:
        return self.name == NetworkName.LOCALNET


_PUBLIC_GAS_PRICE = "10000000000alyth"

_NETWORKS: dict[NetworkName, Network] = {
    NetworkName.LOCALNET: Network(
        name=NetworkName.LOCALNET,
        cosmos_chain_id="mono-local-1",
        evm_chain_id=LOCALNET_EVM_CHAIN_ID,  # 0x40001
    ),
    NetworkName.SPRINTNET: Network(
        name=NetworkName.SPRINTNET,
        cosmos_chain_id="mono-sprint-1",
        evm_chain_id=262146,  # 0x40002
        default_genesis_url=(
            "https://raw.githubusercontent.com/monolythium/networks/main/sprintnet/genesis.json"
        ),
        default_peers_url=(
            "https://raw.githubusercontent.com/monolythium/networks/main/networks/sprintnet.json"
        ),
        min_gas_price=_PUBLIC_GAS_PRICE,
        seed_dns=(
            "seed1.sprintnet.mononodes.xyz",
            "seed2.sprintnet.mononodes.xyz",
            "seed3.sprintnet.mononodes.xyz",
        ),
    ),
    NetworkName.TESTNET: Network(
        name=NetworkName.TESTNET,
        cosmos_chain_id="mono-test-1",
        evm_chain_id=262147,  # 0x40003
        default_genesis_url=(
            "https://raw.githubusercontent.com/monolythium/mono-core-peers/prod/networks/testnet/genesis.json"
        ),
        default_peers_url=(
            "https://raw.githubusercontent.com/monolythium/mono-core-peers/prod/networks/testnet/peers.json"
        ),
        min_gas_price=_PUBLIC_GAS_PRICE,
        seed_dns=(
            "seed1.testnet.mononodes.xyz",
            "seed2.testnet.mononodes.xyz",
            "seed3.testnet.mononodes.xyz",
        ),
    ),
    NetworkName.MAINNET: Network(
        name=NetworkName.MAINNET,
        cosmos_chain_id="mono-1",
        evm_chain_id=262148,  # 0x40004
        default_genesis_url=(
            "https://raw.githubusercontent.com/monolythium/mono-core-peers/prod/networks/mainnet/genesis.json"
        ),
        default_peers_url=(
            "https://raw.githubusercontent.com/monolythium/mono-core-peers/prod/networks/mainnet/peers.json"
        ),
        min_gas_price=_PUBLIC_GAS_PRICE,
        seed_dns=(
            "seed1.mainnet.mononodes.xyz",
            "seed2.mainnet.mononodes.xyz",
            "seed3.mainnet.mononodes.xyz",
        ),
    ),
}


def _check_registry() -> None:
    cosmos_ids = [n.cosmos_chain_id for n in _NETWORKS.values()]
    evm_ids = [n.evm_chain_id for n in _NETWORKS.values()]
    if len(set(cosmos_ids)) != len(cosmos_ids):
        raise RuntimeError("network registry: duplicate cosmos_chain_id")
    if len(set(evm_ids)) != len(evm_ids):
        raise RuntimeError("network registry: duplicate evm_chain_id")


_check_registry()


def parse_network_name(text: str) -> NetworkName:
    """Case-insensitive name parse. Raises NetworkUnknown."""
    lowered = text.strip().lower()
    for name in NetworkName:
        if name.value.lower() == lowered:
            return name
    raise NetworkUnknown(text)


def lookup(name: NetworkName | str) -> Network:
    """Return the Network for a name. Raises NetworkUnknown."""
    if not isinstance(name, NetworkName):
        name = parse_network_name(name)
    return _NETWORKS[name]


def list_networks() -> list[Network]:
    """All networks in canonical order (Localnet first)."""
    return [_NETWORKS[name] for name in NetworkName]


def network_by_cosmos_chain_id(chain_id: str) -> Optional[Network]:
    for network in _NETWORKS.values():
        if network.cosmos_chain_id == chain_id:
            return network
    return None


def network_by_evm_chain_id(evm_chain_id: int) -> Optional[Network]:
    for network in _NETWORKS.values():
        if network.evm_chain_id == evm_chain_id:
            return network
    return None


def is_localnet_leak(network: Network, evm_chain_id: int) -> bool:
    """True when a public network would run with the Localnet EVM id."""
    return not network.is_localnet and evm_chain_id == LOCALNET_EVM_CHAIN_ID


def ensure_not_localnet_leak(network: Network, evm_chain_id: int) -> None:
    """Raise DriftFatal if ``evm_chain_id`` is the Localnet id on a public network."""
    if is_localnet_leak(network, evm_chain_id):
        raise DriftFatal(
            f"Localnet leak: EVM chain id {LOCALNET_EVM_CHAIN_ID} detected for "
            f"{network.name.value} (expected {network.evm_chain_id})"
        )
