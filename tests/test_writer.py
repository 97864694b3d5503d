"""Tests for the on-disk writer: atomic replace, surgical edits, dry-run purity."""

import os
import stat
from pathlib import Path

import pytest

from monoctl.core import writer
from monoctl.core.config_patch import SyncStrategy, generate
from monoctl.errors import PathTraversal, WriterIOError
from monoctl.models.network import lookup
from monoctl.models.peer import Peer

from conftest import PEER1, SEED1


def _patch(**kwargs):
    return generate(
        lookup("Sprintnet"), SyncStrategy.DEFAULT, [Peer.parse(SEED1)], [Peer.parse(PEER1)], **kwargs
    )


def _tree(root: Path) -> list[str]:
    if not root.exists():
        return []
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


class TestHome:
    @pytest.mark.parametrize("home", ["relative/node", "/srv/../etc", "/srv/node/.."])
    def test_traversal_refused(self, home: str) -> None:
        with pytest.raises(PathTraversal):
            writer.resolve_home(home)

    def test_absolute_ok(self, tmp_path: Path) -> None:
        assert writer.genesis_path(tmp_path) == tmp_path / "config" / "genesis.json"


class TestWriteGenesis:
    def test_writes_atomically(self, home: Path) -> None:
        path = writer.write_genesis(home, b'{"chain_id": "mono-sprint-1"}')
        assert path.read_bytes() == b'{"chain_id": "mono-sprint-1"}'
        assert _tree(home) == ["config", "config/genesis.json"]
        assert stat.S_IMODE(path.stat().st_mode) == 0o644

    def test_overwrite_keeps_mode(self, home: Path) -> None:
        path = writer.write_genesis(home, b"{}")
        os.chmod(path, 0o600)
        writer.write_genesis(home, b'{"a": 1}')
        assert stat.S_IMODE(path.stat().st_mode) == 0o600
        assert path.read_bytes() == b'{"a": 1}'

    def test_dry_run_touches_nothing(self, home: Path) -> None:
        path = writer.write_genesis(home, b"{}", dry_run=True)
        assert path == home / "config" / "genesis.json"
        assert not home.exists()

    def test_relative_home_refused(self) -> None:
        with pytest.raises(PathTraversal):
            writer.write_genesis("node", b"{}")


class TestWritePatch:
    def test_fresh_home(self, home: Path, read_config) -> None:
        sidecar, text = writer.write_patch(home, _patch())
        assert sidecar == home / "config" / "monoctl.patch"
        assert sidecar.read_text() == text
        assert read_config("client.toml") == 'chain-id = "mono-sprint-1"\n'
        app = read_config("app.toml")
        assert 'minimum-gas-prices = "10000000000alyth"' in app
        assert "[evm]\nevm-chain-id = 262146\n" in app
        config = read_config("config.toml")
        assert f'seeds = "{SEED1}"' in config
        assert f'persistent_peers = "{PEER1}"' in config
        assert "pex = true" in config
        assert 'external_address = ""' in config

    def test_preserves_unrelated_lines(self, home: Path, read_config) -> None:
        config_dir = home / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "config.toml").write_text(
            '# node config\nmoniker = "m"\n\n[p2p]\n# seeds = "old"\nseeds = "x"\nladdr = "tcp://0.0.0.0:26656"\n'
        )
        writer.write_patch(home, _patch())
        config = read_config("config.toml")
        assert config.startswith('# node config\nmoniker = "m"\n\n[p2p]\n# seeds = "old"\n')
        assert 'laddr = "tcp://0.0.0.0:26656"' in config
        assert 'seeds = "x"' not in config

    def test_unchanged_files_not_rewritten(self, home: Path) -> None:
        writer.write_patch(home, _patch())
        client = home / "config" / "client.toml"
        before = client.stat().st_ino
        writer.write_patch(home, _patch())
        assert client.stat().st_ino == before

    def test_subset_of_keys(self, home: Path, read_config) -> None:
        writer.write_patch(home, _patch(), keys=["cosmos_chain_id"])
        assert read_config("client.toml") == 'chain-id = "mono-sprint-1"\n'
        assert "evm-chain-id" not in read_config("app.toml")
        assert (home / "config" / "monoctl.patch").exists()

    def test_dry_run_renders_without_writing(self, home: Path) -> None:
        sidecar, text = writer.write_patch(home, _patch(), dry_run=True)
        assert "[canonical]" in text
        assert not home.exists()
        rendered = writer.render_patch(home, _patch())
        assert set(rendered) == {"client.toml", "app.toml", "config.toml"}

    def test_unparseable_result_is_io_error(self, home: Path) -> None:
        config_dir = home / "config"
        config_dir.mkdir(parents=True)
        broken = "[p2p\nseeds = \n"
        (config_dir / "config.toml").write_text(broken)
        with pytest.raises(WriterIOError) as exc:
            writer.write_patch(home, _patch())
        assert exc.value.io_kind == "parse"
        assert (config_dir / "config.toml").read_text() == broken

    def test_no_temp_files_left(self, home: Path) -> None:
        writer.write_patch(home, _patch())
        assert not [p for p in (home / "config").iterdir() if p.name.endswith(".tmp")]


class TestAddrbook:
    def test_removes_existing(self, home: Path) -> None:
        config_dir = home / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "addrbook.json").write_text("{}")
        assert writer.clear_addrbook(home)
        assert not (config_dir / "addrbook.json").exists()

    def test_absent(self, home: Path) -> None:
        assert not writer.clear_addrbook(home)

    def test_dry_run_keeps_file(self, home: Path) -> None:
        config_dir = home / "config"
        config_dir.mkdir(parents=True)
        (config_dir / "addrbook.json").write_text("{}")
        assert writer.clear_addrbook(home, dry_run=True)
        assert (config_dir / "addrbook.json").exists()


class TestSidecar:
    def test_round_trip(self, home: Path) -> None:
        writer.write_patch(home, _patch(external_address="203.0.113.5:26656"))
        record = writer.read_sidecar(home)
        assert record.network == "Sprintnet"
        assert record.sync_strategy == "default"
        assert record.external_address == "203.0.113.5:26656"
        assert record.canonical["evm_chain_id"] == 262146

    def test_absent(self, home: Path) -> None:
        assert writer.read_sidecar(home) is None

    def test_invalid(self, home: Path) -> None:
        (home / "config").mkdir(parents=True)
        (home / "config" / "monoctl.patch").write_text("not = [toml")
        with pytest.raises(ValueError):
            writer.read_sidecar(home)
