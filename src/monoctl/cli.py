"""monoctl CLI: onboarding and drift repair for a Monolythium node home.

Usage:
    monoctl networks
    monoctl join --network Sprintnet --home ~/.monod
    monoctl join --network Testnet --home ~/.monod --sync-strategy bootstrap --dry-run
    monoctl doctor --network Sprintnet --home ~/.monod
    monoctl repair --network Sprintnet --home ~/.monod --force
    monoctl status --network Sprintnet
    monoctl systemd-unit --network Sprintnet --home /var/lib/monod --user monod
    monoctl mesh-config --network Sprintnet --home ~/.monod

Exit codes: 0 done, 1 failed (non-fatal), 2 fatal (wrong network or
wrong artifact), 3 cancelled.
"""

from __future__ import annotations

import argparse
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from monoctl.core.config_patch import parse_sync_strategy
from monoctl.engine.cancel import CancelToken
from monoctl.engine.doctor import DriftDoctor, format_repair, format_report
from monoctl.engine.join import JoinOptions, JoinOrchestrator, render_checklist
from monoctl.errors import MonoctlError
from monoctl.log import configure_logging
from monoctl.models.network import list_networks
from monoctl.models.peer import RPCEndpoints
from monoctl.models.report import EXIT_DONE, EXIT_FAILED, EXIT_FATAL
from monoctl.net.fetcher import HTTPFetcher
from monoctl.rpc.health import check_rpc, format_node_status, format_results, node_status
from monoctl.service import mesh
from monoctl.service.systemd import (
    MeshUnit,
    SystemdUnit,
    render_mesh_unit,
    render_unit,
    service_instructions,
)
from monoctl.settings import Settings


def _home(value: str) -> Path:
    # absolute() keeps '..' components so the writer can still refuse them
    return Path(value).expanduser().absolute()


def _fetcher(args: argparse.Namespace) -> HTTPFetcher:
    return HTTPFetcher(timeout=args.settings.fetch_timeout)


@contextmanager
def _cancel_on_interrupt() -> Iterator[CancelToken]:
    """Turn Ctrl-C into a cooperative cancel for the duration of a pipeline."""
    token = CancelToken()

    def handler(signum, frame) -> None:
        print("\nCancelling after the current step ...", file=sys.stderr)
        token.cancel()

    previous = signal.signal(signal.SIGINT, handler)
    try:
        yield token
    finally:
        signal.signal(signal.SIGINT, previous)


def cmd_networks(args: argparse.Namespace) -> int:
    print(f"{'NAME':<10} {'CHAIN ID':<15} {'EVM CHAIN ID':<14} EVM HEX")
    for net in list_networks():
        print(
            f"{net.name.value:<10} {net.cosmos_chain_id:<15} "
            f"{net.evm_chain_id:<14} {net.evm_chain_id_hex}"
        )
    return EXIT_DONE


def cmd_join(args: argparse.Namespace) -> int:
    strategy = parse_sync_strategy(args.sync_strategy)
    options = JoinOptions(
        network=args.network,
        home=_home(args.home),
        sync_strategy=strategy,
        genesis_url=args.genesis_url or "",
        peers_url=args.peers_url or "",
        expected_sha256=args.sha256 or "",
        clear_addrbook=args.clear_addrbook,
        external_address=args.external_address or "",
        dry_run=args.dry_run,
    )
    orchestrator = JoinOrchestrator(_fetcher(args))
    with _cancel_on_interrupt() as token:
        result = orchestrator.run(options, cancel=token)

    title = f"Join {result.network} -> {result.home}"
    if result.dry_run:
        title += " (dry-run)"
    print(title)
    print(render_checklist(result.steps))
    if result.dry_run and result.rendered_patch:
        print()
        print("Config patch that would be written:")
        print(result.rendered_patch, end="")
    if result.error is not None:
        label = "FATAL" if result.fatal else "FAILED"
        print(f"\n{label}: {result.error.message}", file=sys.stderr)
    else:
        print("\nDONE")
    return result.exit_code


def cmd_doctor(args: argparse.Namespace) -> int:
    doctor = DriftDoctor(_fetcher(args))
    report = doctor.diagnose(args.network, _home(args.home), peers_url=args.peers_url or "")
    print(format_report(report))
    return report.exit_code


def cmd_repair(args: argparse.Namespace) -> int:
    doctor = DriftDoctor(_fetcher(args))
    result = doctor.repair(
        args.network,
        _home(args.home),
        peers_url=args.peers_url or "",
        force=args.force,
        dry_run=args.dry_run,
    )
    print(format_report(result.doctor))
    print()
    print(format_repair(result))
    if result.dry_run:
        for file, text in result.rendered.items():
            print(f"\n--- {file} ---")
            print(text, end="")
    if result.error is not None:
        print(f"\n{result.error.message}", file=sys.stderr)
    return result.exit_code


def cmd_status(args: argparse.Namespace) -> int:
    settings = args.settings
    endpoints = RPCEndpoints(
        comet_rpc=args.comet_rpc or settings.comet_rpc,
        cosmos_rest=args.cosmos_rest or settings.cosmos_rest,
        evm_rpc=args.evm_rpc or settings.evm_rpc,
    )
    fetcher = _fetcher(args)
    results = check_rpc(args.network, endpoints, fetcher, timeout=settings.fetch_timeout)
    print(format_results(results))
    try:
        print()
        print(format_node_status(node_status(endpoints.comet_rpc, fetcher)))
    except (MonoctlError, ValueError) as e:
        print(f"Node status unavailable: {e}", file=sys.stderr)
    return EXIT_DONE if results.all_pass else EXIT_FAILED


def cmd_systemd_unit(args: argparse.Namespace) -> int:
    home = str(_home(args.home))
    overrides = {"use_cosmovisor": args.cosmovisor}
    if args.binary:
        overrides["binary_path"] = args.binary
    unit = SystemdUnit.default(args.network, args.user, home, **overrides)
    print(render_unit(unit))
    print(service_instructions(unit.name))
    if args.mesh:
        mesh_unit = MeshUnit.default(
            args.network, args.user, str(mesh.config_path(home, args.network))
        )
        print(render_mesh_unit(mesh_unit))
        print(service_instructions(mesh_unit.name))
    return EXIT_DONE


def cmd_mesh_config(args: argparse.Namespace) -> int:
    home = _home(args.home)
    # edits to an existing config survive unless --reset is given
    if not args.reset and mesh.config_path(home, args.network).exists():
        config = mesh.load_config(home, args.network)
    else:
        config = mesh.MeshConfig.default(args.network)
    if args.listen:
        config.listen_address = args.listen
    if args.node_rpc:
        config.node_rpc_url = args.node_rpc
    if args.node_grpc:
        config.node_grpc_address = args.node_grpc
    path, text = mesh.save_config(home, config, dry_run=args.dry_run)
    if args.dry_run:
        print(f"Would write {path}:")
    else:
        print(f"Wrote {path}:")
    print(text, end="")
    return EXIT_DONE


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monoctl",
        description="monoctl: join a Monolythium network and keep the node config canonical",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help=f"Log level (default: {settings.log_level})",
    )
    sub = parser.add_subparsers(dest="command")

    def network_and_home(p: argparse.ArgumentParser, home: bool = True) -> None:
        p.add_argument(
            "--network", default=settings.network,
            help=f"Localnet, Sprintnet, Testnet or Mainnet (default: {settings.network})",
        )
        if home:
            p.add_argument(
                "--home", default=str(settings.home),
                help=f"Node home directory (default: {settings.home})",
            )

    # networks
    sub.add_parser("networks", help="List known networks")

    # join
    p_join = sub.add_parser("join", help="Fetch genesis and peers and write the node config")
    network_and_home(p_join)
    p_join.add_argument(
        "--sync-strategy", default="default",
        help="default or bootstrap (default: default)",
    )
    p_join.add_argument("--genesis-url", help="Override the network's genesis URL")
    p_join.add_argument("--peers-url", help="Override the network's peer document URL")
    p_join.add_argument("--sha256", help="Trusted genesis SHA-256 (overrides the peer document)")
    p_join.add_argument("--clear-addrbook", action="store_true", help="Remove addrbook.json")
    p_join.add_argument("--external-address", help="p2p external_address (host:port)")
    p_join.add_argument("--dry-run", action="store_true", help="Show what would be written")

    # doctor
    p_doc = sub.add_parser("doctor", help="Report drift from canonical configuration")
    network_and_home(p_doc)
    p_doc.add_argument("--peers-url", help="Override the network's peer document URL")

    # repair
    p_rep = sub.add_parser("repair", help="Rewrite drifted canonical keys")
    network_and_home(p_rep)
    p_rep.add_argument("--peers-url", help="Override the network's peer document URL")
    p_rep.add_argument("--force", action="store_true", help="Repair even FATAL drift")
    p_rep.add_argument("--dry-run", action="store_true", help="Show the repaired files only")

    # status
    p_status = sub.add_parser("status", help="Probe a running node's RPC endpoints")
    network_and_home(p_status, home=False)
    p_status.add_argument("--comet-rpc", help=f"Comet RPC URL (default: {settings.comet_rpc})")
    p_status.add_argument("--cosmos-rest", help=f"Cosmos REST URL (default: {settings.cosmos_rest})")
    p_status.add_argument("--evm-rpc", help=f"EVM JSON-RPC URL (default: {settings.evm_rpc})")

    # systemd-unit
    p_unit = sub.add_parser("systemd-unit", help="Print the node service unit file")
    network_and_home(p_unit)
    p_unit.add_argument("--user", default="monod", help="Service user (default: monod)")
    p_unit.add_argument("--binary", help="Path to monod (default: /usr/local/bin/monod)")
    p_unit.add_argument("--cosmovisor", action="store_true", help="Run under Cosmovisor")
    p_unit.add_argument("--mesh", action="store_true", help="Also print the mesh sidecar unit")

    # mesh-config
    p_mesh = sub.add_parser("mesh-config", help="Write the mesh sidecar configuration")
    network_and_home(p_mesh)
    p_mesh.add_argument("--listen", help="Listen address (default: per-network port)")
    p_mesh.add_argument("--node-rpc", help="Node RPC URL")
    p_mesh.add_argument("--node-grpc", help="Node gRPC address")
    p_mesh.add_argument("--reset", action="store_true", help="Ignore an existing config and start from defaults")
    p_mesh.add_argument("--dry-run", action="store_true", help="Print without writing")

    return parser


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except MonoctlError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    parser = build_parser(settings)
    args = parser.parse_args(argv)
    args.settings = settings

    if args.command is None:
        parser.print_help()
        return EXIT_DONE

    configure_logging(args.log_level)

    commands = {
        "networks": cmd_networks,
        "join": cmd_join,
        "doctor": cmd_doctor,
        "repair": cmd_repair,
        "status": cmd_status,
        "systemd-unit": cmd_systemd_unit,
        "mesh-config": cmd_mesh_config,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return EXIT_FAILED

    try:
        return handler(args)
    except MonoctlError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FATAL if e.fatal else EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
