"""Mesh (Rosetta API) sidecar configuration.

Stored as JSON at ``<home>/.mono/<Network>/mesh-rosetta/config.json`` and
written with the same atomic replace as the node files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Union

from monoctl.core.writer import _atomic_write, read_text, resolve_home
from monoctl.errors import ConfigError
from monoctl.models.network import Network, NetworkName, lookup


logger = logging.getLogger(__name__)

DEFAULT_MESH_PORT = 8080
DEFAULT_NODE_RPC_PORT = 26657
DEFAULT_NODE_GRPC_PORT = 9090

MESH_PORTS: dict[NetworkName, int] = {
    NetworkName.LOCALNET: 8080,
    NetworkName.SPRINTNET: 8081,
    NetworkName.TESTNET: 8082,
    NetworkName.MAINNET: 8083,
}

_REQUIRED = ("chain_id", "network", "node_rpc_url", "node_grpc_address", "listen_address")


@dataclass
class MeshConfig:
    chain_id: str
    network: str
    node_rpc_url: str
    node_grpc_address: str
    listen_address: str
    offline: bool = False
    retry_count: int = 3

    @classmethod
    def default(cls, network: Union[Network, NetworkName, str]) -> MeshConfig:
        net = network if isinstance(network, Network) else lookup(network)
        port = MESH_PORTS.get(net.name, DEFAULT_MESH_PORT)
        return cls(
            chain_id=net.cosmos_chain_id,
            network=net.name.value,
            node_rpc_url=f"http://localhost:{DEFAULT_NODE_RPC_PORT}",
            node_grpc_address=f"localhost:{DEFAULT_NODE_GRPC_PORT}",
            listen_address=f"0.0.0.0:{port}",
        )

    def validate(self) -> None:
        """Raises ConfigError naming the first missing field."""
        for name in _REQUIRED:
            if not getattr(self, name):
                raise ConfigError(f"mesh config: {name} is required")
        if self.retry_count < 0:
            raise ConfigError(f"mesh config: retry_count must be >= 0, got {self.retry_count}")

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2) + "\n"

    @classmethod
    def from_json(cls, text: str) -> MeshConfig:
        try:
            doc = json.loads(text)
        except ValueError as e:
            raise ConfigError(f"mesh config is not valid JSON: {e}") from e
        if not isinstance(doc, dict):
            raise ConfigError("mesh config must be a JSON object")
        known = {k: doc[k] for k in cls.__dataclass_fields__ if k in doc}
        missing = [k for k in _REQUIRED if k not in known]
        if missing:
            raise ConfigError(f"mesh config missing {', '.join(missing)}")
        return cls(**known)


def config_path(home: Union[str, Path], network: Union[Network, NetworkName, str]) -> Path:
    net = network if isinstance(network, Network) else lookup(network)
    return resolve_home(home) / ".mono" / net.name.value / "mesh-rosetta" / "config.json"


def load_config(home: Union[str, Path], network: Union[Network, NetworkName, str]) -> MeshConfig:
    path = config_path(home, network)
    text = read_text(path)
    if not text:
        raise ConfigError(f"mesh config not found at {path}")
    return MeshConfig.from_json(text)


def save_config(
    home: Union[str, Path],
    config: MeshConfig,
    dry_run: bool = False,
) -> tuple[Path, str]:
    """Validate and write ``config``. Returns the path and the JSON text."""
    config.validate()
    path = config_path(home, config.network)
    text = config.to_json()
    if dry_run:
        return path, text
    _atomic_write(path, text.encode("utf-8"))
    logger.info("wrote mesh config %s", path)
    return path, text
