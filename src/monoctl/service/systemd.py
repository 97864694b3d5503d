"""Host-service unit text for the node and the mesh sidecar.

Only renders text. Installing, enabling or starting a unit is left to
the operator; ``service_instructions`` prints the commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Union

from monoctl.models.network import Network, NetworkName, lookup


SYSTEMD_DIR = "/etc/systemd/system"
DEFAULT_BINARY = "/usr/local/bin/monod"
DEFAULT_COSMOVISOR = "/usr/local/bin/cosmovisor"
DEFAULT_MESH_BINARY = "/usr/local/bin/mono-mesh-rosetta"


def _network_label(network: Union[Network, NetworkName, str]) -> str:
    net = network if isinstance(network, Network) else lookup(network)
    return net.name.value


def unit_name(network: Union[Network, NetworkName, str]) -> str:
    return f"monod-{_network_label(network)}.service"


def mesh_unit_name(network: Union[Network, NetworkName, str]) -> str:
    return f"mono-mesh@{_network_label(network).lower()}.service"


def unit_path(name: str) -> str:
    return str(PurePosixPath(SYSTEMD_DIR) / name)


@dataclass(frozen=True)
class SystemdUnit:
    """Parameters of the node service unit."""
    network: str
    user: str
    home: str
    binary_path: str = DEFAULT_BINARY
    description: str = ""
    after: str = "network-online.target"
    restart: str = "on-failure"
    restart_sec: int = 10
    use_cosmovisor: bool = False
    cosmovisor_bin: str = DEFAULT_COSMOVISOR

    @classmethod
    def default(
        cls,
        network: Union[Network, NetworkName, str],
        user: str,
        home: str,
        **overrides,
    ) -> SystemdUnit:
        label = _network_label(network)
        values = dict(
            network=label,
            user=user,
            home=home,
            description=f"Monolythium Node ({label})",
        )
        values.update(overrides)
        return cls(**values)

    @property
    def name(self) -> str:
        return unit_name(self.network)


@dataclass(frozen=True)
class MeshUnit:
    """Parameters of the mesh (Rosetta API) sidecar service unit."""
    network: str
    user: str
    config_path: str
    binary_path: str = DEFAULT_MESH_BINARY
    description: str = ""
    after: str = "network-online.target"
    restart: str = "on-failure"
    restart_sec: int = 10

    @classmethod
    def default(
        cls,
        network: Union[Network, NetworkName, str],
        user: str,
        config_path: str,
    ) -> MeshUnit:
        label = _network_label(network)
        return cls(
            network=label,
            user=user,
            config_path=config_path,
            description=f"Mesh/Rosetta API Sidecar ({label})",
        )

    @property
    def name(self) -> str:
        return mesh_unit_name(self.network)


def _hardening(read_write_path: str) -> list[str]:
    return [
        "LimitNOFILE=65535",
        "",
        "# Security hardening",
        "NoNewPrivileges=true",
        "PrivateTmp=true",
        "ProtectSystem=strict",
        "ProtectHome=read-only",
        f"ReadWritePaths={read_write_path}",
    ]


def _header(description: str, after: str, user: str) -> list[str]:
    return [
        "[Unit]",
        f"Description={description}",
        f"After={after}",
        "Wants=network-online.target",
        "",
        "[Service]",
        f"User={user}",
        f"Group={user}",
        "Type=simple",
    ]


_FOOTER = ["", "[Install]", "WantedBy=multi-user.target"]


def render_unit(unit: SystemdUnit) -> str:
    """Render the node unit file. Under Cosmovisor the daemon environment
    is set and the binary is started through ``cosmovisor run``."""
    lines = _header(unit.description, unit.after, unit.user)
    if unit.use_cosmovisor:
        lines += [
            'Environment="DAEMON_NAME=monod"',
            f'Environment="DAEMON_HOME={unit.home}"',
            'Environment="DAEMON_ALLOW_DOWNLOAD_BINARIES=false"',
            'Environment="DAEMON_RESTART_AFTER_UPGRADE=true"',
            'Environment="DAEMON_POLL_INTERVAL=300ms"',
            'Environment="UNSAFE_SKIP_BACKUP=true"',
            f"ExecStart={unit.cosmovisor_bin} run start --home {unit.home}",
        ]
    else:
        lines.append(f"ExecStart={unit.binary_path} start --home {unit.home}")
    lines += [f"Restart={unit.restart}", f"RestartSec={unit.restart_sec}"]
    lines += _hardening(unit.home)
    lines += _FOOTER
    return "\n".join(lines) + "\n"


def render_mesh_unit(unit: MeshUnit) -> str:
    lines = _header(unit.description, unit.after, unit.user)
    lines.append(f"ExecStart={unit.binary_path} --config {unit.config_path}")
    lines += [f"Restart={unit.restart}", f"RestartSec={unit.restart_sec}"]
    lines += _hardening(str(PurePosixPath(unit.config_path).parent))
    lines += _FOOTER
    return "\n".join(lines) + "\n"


def service_instructions(name: str) -> str:
    """Commands an operator runs after installing unit ``name``."""
    path = unit_path(name)
    return (
        f"Install the unit file as: {path}\n"
        "\n"
        "To enable and start the service:\n"
        "  sudo systemctl daemon-reload\n"
        f"  sudo systemctl enable {name}\n"
        f"  sudo systemctl start {name}\n"
        "\n"
        "To check status:\n"
        f"  sudo systemctl status {name}\n"
        "\n"
        "To view logs:\n"
        f"  sudo journalctl -u {name} -f\n"
    )
