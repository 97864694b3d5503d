"""Tests for the config patch generator and sync strategies."""

import tomllib

import pytest

from monoctl.core.config_patch import (
    CANONICAL_KEY_NAMES,
    SyncStrategy,
    apply_sync_strategy,
    canonical_key,
    generate,
    parse_sync_strategy,
    toml_literal,
)
from monoctl.core.peers import parse_peer_document
from monoctl.errors import BootstrapUnavailable, UnsupportedStrategy
from monoctl.models.network import lookup
from monoctl.models.peer import Peer, PeerRegistry

from conftest import BOOT1, PEER1, PEER2, SEED1, SEED2, make_peer_doc


def _registry(**fields) -> PeerRegistry:
    return parse_peer_document(make_peer_doc(**fields), "mono-sprint-1")


class TestSyncStrategy:
    def test_parse(self) -> None:
        assert parse_sync_strategy("Bootstrap") == SyncStrategy.BOOTSTRAP
        assert parse_sync_strategy("default") == SyncStrategy.DEFAULT

    def test_statesync_reserved(self) -> None:
        with pytest.raises(UnsupportedStrategy) as exc:
            parse_sync_strategy("statesync")
        assert "reserved" in exc.value.message

    def test_unknown(self) -> None:
        with pytest.raises(UnsupportedStrategy):
            parse_sync_strategy("fast")


class TestApplySyncStrategy:
    def test_default_keeps_seeds(self) -> None:
        seeds, persistent = apply_sync_strategy(SyncStrategy.DEFAULT, _registry())
        assert [str(p) for p in seeds] == [SEED1, SEED2]
        assert [str(p) for p in persistent] == [PEER1, PEER2]

    def test_default_without_registry(self) -> None:
        assert apply_sync_strategy(SyncStrategy.DEFAULT, None) == ([], [])

    def test_bootstrap_promotes_bootstrap_peers(self) -> None:
        seeds, persistent = apply_sync_strategy(SyncStrategy.BOOTSTRAP, _registry())
        assert seeds == []
        assert [str(p) for p in persistent] == [BOOT1]

    def test_bootstrap_falls_back_to_persistent(self) -> None:
        seeds, persistent = apply_sync_strategy(
            SyncStrategy.BOOTSTRAP, _registry(bootstrap_peers=[])
        )
        assert seeds == []
        assert [str(p) for p in persistent] == [PEER1, PEER2]

    def test_bootstrap_unavailable(self) -> None:
        with pytest.raises(BootstrapUnavailable) as exc:
            apply_sync_strategy(
                SyncStrategy.BOOTSTRAP, _registry(bootstrap_peers=[], persistent_peers=[])
            )
        assert not exc.value.fatal
        with pytest.raises(BootstrapUnavailable):
            apply_sync_strategy(SyncStrategy.BOOTSTRAP, None)


class TestGenerate:
    def test_complete_patch(self) -> None:
        patch = generate(
            lookup("Sprintnet"), SyncStrategy.DEFAULT,
            [Peer.parse(SEED1)], [Peer.parse(PEER1), Peer.parse(PEER2)],
        )
        assert patch.cosmos_chain_id == "mono-sprint-1"
        assert patch.evm_chain_id == 262146
        assert patch.minimum_gas_prices == "10000000000alyth"
        assert patch.seeds == SEED1
        assert patch.persistent_peers == f"{PEER1},{PEER2}"
        assert patch.pex_enabled is True
        assert patch.external_address == ""
        assert [k.name for k, _ in patch.items()] == list(CANONICAL_KEY_NAMES)

    def test_dedupes_in_input_order(self) -> None:
        peers = [Peer.parse(PEER2), Peer.parse(PEER1), Peer.parse(PEER2)]
        patch = generate(lookup("Testnet"), SyncStrategy.DEFAULT, [], peers)
        assert patch.persistent_peers == f"{PEER2},{PEER1}"

    def test_bootstrap_drops_seeds_and_pex(self) -> None:
        patch = generate(
            lookup("Mainnet"), SyncStrategy.BOOTSTRAP, [Peer.parse(SEED1)], [Peer.parse(BOOT1)]
        )
        assert patch.seeds == ""
        assert patch.persistent_peers == BOOT1
        assert patch.pex_enabled is False

    def test_localnet(self) -> None:
        patch = generate(lookup("Localnet"), SyncStrategy.DEFAULT, [], [])
        assert patch.evm_chain_id == 262145
        assert patch.minimum_gas_prices == "0alyth"
        assert patch.seeds == ""

    def test_deterministic(self) -> None:
        args = (lookup("Sprintnet"), SyncStrategy.DEFAULT, [Peer.parse(SEED1)], [Peer.parse(PEER1)])
        assert generate(*args) == generate(*args)
        assert generate(*args).render() == generate(*args).render()

    def test_literals_per_file(self) -> None:
        patch = generate(lookup("Sprintnet"), SyncStrategy.BOOTSTRAP, [], [Peer.parse(BOOT1)])
        app = dict((k.toml_key, lit) for k, lit in patch.for_file("app.toml"))
        assert app == {"evm-chain-id": "262146", "minimum-gas-prices": '"10000000000alyth"'}
        p2p = dict((k.toml_key, lit) for k, lit in patch.for_file("config.toml"))
        assert p2p["pex"] == "false"
        assert p2p["persistent_peers"] == f'"{BOOT1}"'


class TestRender:
    def test_sidecar_is_valid_toml(self) -> None:
        patch = generate(
            lookup("Sprintnet"), SyncStrategy.DEFAULT, [Peer.parse(SEED1)], [Peer.parse(PEER1)],
            external_address="203.0.113.5:26656",
        )
        doc = tomllib.loads(patch.render())
        assert doc["monoctl"] == {"network": "Sprintnet", "sync_strategy": "default"}
        assert doc["canonical"]["evm_chain_id"] == 262146
        assert doc["canonical"]["pex_enabled"] is True
        assert doc["canonical"]["external_address"] == "203.0.113.5:26656"
        assert set(doc["canonical"]) == set(CANONICAL_KEY_NAMES)


class TestCanonicalKeys:
    def test_locations(self) -> None:
        assert canonical_key("cosmos_chain_id").location == "client.toml chain-id"
        assert canonical_key("evm_chain_id").location == "app.toml [evm] evm-chain-id"
        assert canonical_key("pex_enabled").toml_key == "pex"

    def test_unknown_key(self) -> None:
        with pytest.raises(KeyError):
            canonical_key("moniker")

    def test_toml_literal(self) -> None:
        assert toml_literal(True) == "true"
        assert toml_literal(262146) == "262146"
        assert toml_literal('a"b') == '"a\\"b"'
