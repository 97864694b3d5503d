"""Drift doctor and repair.

The doctor compares every canonical key on disk with the value the
selected network requires and classifies each deviation:

    key absent                                   WARN
    value matches                                OK
    value differs only by whitespace / order     INFO
    cosmos or EVM chain id differs               CRITICAL
    EVM chain id belongs to another network      FATAL ("Localnet leak"
                                                 for the Localnet id)
    peer list membership differs                 CRITICAL
    pex inconsistent with recorded strategy      WARN
    any other value differs                      WARN

Canonical peer lists are the ones join would write. They come from the
peer document when it validates. Otherwise join ran without it, so the
lists recorded in the sidecar by the last write stand; with no sidecar
they are empty.

The doctor itself never writes. Repair rewrites every non-OK key with the
same writer the orchestrator uses, but refuses outright when a FATAL
record is present and the operator has not forced it: a foreign chain
id may mean the home belongs to another network.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from monoctl.core import toml_lines, writer
from monoctl.core.config_patch import (
    CANONICAL_KEYS,
    PEER_KEYS,
    TARGET_FILES,
    CanonicalKey,
    ConfigPatch,
    SyncStrategy,
    apply_sync_strategy,
    generate,
    parse_sync_strategy,
    toml_literal,
)
from monoctl.core.peers import parse_peer_list_string
from monoctl.core.writer import SidecarRecord
from monoctl.engine.join import fetch_peer_document, render_checklist, validate_peer_document
from monoctl.errors import BootstrapUnavailable, DriftFatal, MonoctlError
from monoctl.models.network import (
    LOCALNET_EVM_CHAIN_ID,
    Network,
    NetworkName,
    lookup,
    network_by_cosmos_chain_id,
    network_by_evm_chain_id,
)
from monoctl.models.peer import Peer
from monoctl.models.report import (
    DoctorReport,
    DriftRecord,
    RepairResult,
    Severity,
    Step,
    StepStatus,
)
from monoctl.net.fetcher import Fetcher


logger = logging.getLogger(__name__)


def _squash(text: str) -> str:
    return "".join(text.split())


def _peer_set(text: str) -> set[str]:
    return {item.strip() for item in text.split(",") if item.strip()}


class DriftDoctor:
    """Detects and repairs drift of canonical keys under a node home.

    Usage:
        doctor = DriftDoctor(HTTPFetcher())
        report = doctor.diagnose("Sprintnet", "/var/lib/monod")
        result = doctor.repair("Sprintnet", "/var/lib/monod", force=False)
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self._fetcher = fetcher

    def diagnose(
        self,
        network: Union[Network, NetworkName, str],
        home: Union[str, Path],
        peers_url: str = "",
        sync_strategy: Optional[SyncStrategy] = None,
        external_address: Optional[str] = None,
    ) -> DoctorReport:
        """Compare the home against canonical values. Read-only.

        Raises NetworkUnknown for an out-of-set name; an unreadable home
        is returned as ``report.error`` with a failed ``read_config`` step.
        """
        report, _patch = self._diagnose(network, home, peers_url, sync_strategy, external_address)
        return report

    def repair(
        self,
        network: Union[Network, NetworkName, str],
        home: Union[str, Path],
        peers_url: str = "",
        sync_strategy: Optional[SyncStrategy] = None,
        external_address: Optional[str] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> RepairResult:
        """Rewrite every non-OK canonical key.

        With a FATAL record and no ``force``, nothing is written and the
        result carries DriftFatal.
        """
        report, patch = self._diagnose(network, home, peers_url, sync_strategy, external_address)
        result = RepairResult(doctor=report, dry_run=dry_run)

        if report.error is not None or patch is None:
            result.error = report.error
            result.steps.append(Step("repair", StepStatus.SKIPPED, "not reached: diagnosis failed"))
            return result

        fatal = report.by_severity(Severity.FATAL)
        if fatal and not force:
            details = "; ".join(r.message for r in fatal)
            result.error = DriftFatal(
                f"refusing to repair: {details}. The home may belong to another "
                f"network; re-run with --force to overwrite"
            )
            result.steps.append(Step("repair", StepStatus.FAILED, result.error.message))
            logger.error("repair refused: %s", details)
            return result

        keys = [r.key for r in report.non_ok()]
        if not keys:
            result.steps.append(Step("repair", StepStatus.SKIPPED, "nothing to repair"))
            return result

        try:
            result.rendered = writer.render_patch(home, patch, keys)
            writer.write_patch(home, patch, dry_run, keys=keys)
        except MonoctlError as e:
            result.error = e
            result.steps.append(Step("write_config_patch", StepStatus.FAILED, e.message))
            return result

        result.repaired = keys
        message = "repaired " + ", ".join(keys)
        if dry_run:
            message = f"(dry-run) would have {message}"
        result.steps.append(Step("write_config_patch", StepStatus.SUCCESS, message))
        if fatal:
            logger.warning("FATAL drift overwritten with --force: %s", ", ".join(r.key for r in fatal))
        return result

    # --- internals -----------------------------------------------------

    def _diagnose(
        self,
        network: Union[Network, NetworkName, str],
        home: Union[str, Path],
        peers_url: str,
        sync_strategy: Optional[SyncStrategy],
        external_address: Optional[str],
    ) -> tuple[DoctorReport, Optional[ConfigPatch]]:
        net = network if isinstance(network, Network) else lookup(network)
        report = DoctorReport(network=net.name.value, home=str(home))

        try:
            files = self._read_files(home)
        except MonoctlError as e:
            report.error = e
            report.steps.append(Step("read_config", StepStatus.FAILED, e.message))
            logger.error("cannot read node home %s: %s", home, e.message)
            return report, None
        present = sum(1 for text in files.values() if text is not None)
        report.steps.append(
            Step("read_config", StepStatus.SUCCESS, f"{present} of {len(files)} config files present")
        )

        strategy, sidecar = self._load_sidecar(home, report)
        if sync_strategy is not None:
            strategy = sync_strategy
        if external_address is None:
            external_address = sidecar.external_address if sidecar else ""
        report.sync_strategy = strategy.value

        seeds, persistent = self._canonical_peers(net, strategy, sidecar, peers_url, report)
        patch = generate(net, strategy, seeds, persistent, external_address=external_address)

        for key in CANONICAL_KEYS:
            text = files[key.file]
            raw = toml_lines.read_raw(text, key.section, key.toml_key) if text is not None else None
            report.records.append(self._classify(key, patch.value(key.name), raw, net, strategy))

        non_ok = len(report.non_ok())
        report.steps.append(Step(
            "compare",
            StepStatus.SUCCESS,
            f"{len(report.records)} keys checked, {non_ok} need attention, worst {report.worst.value}",
        ))
        return report, patch

    @staticmethod
    def _read_files(home: Union[str, Path]) -> dict[str, Optional[str]]:
        """Target file contents, None for a missing file. Raises
        PathTraversal or WriterIOError."""
        files: dict[str, Optional[str]] = {}
        for file in TARGET_FILES:
            path = writer.target_path(home, file)
            files[file] = writer.read_text(path) if path.exists() else None
        return files

    def _load_sidecar(
        self, home: Union[str, Path], report: DoctorReport
    ) -> tuple[SyncStrategy, Optional[SidecarRecord]]:
        try:
            record = writer.read_sidecar(home)
        except (ValueError, MonoctlError) as e:
            report.steps.append(Step("load_sidecar", StepStatus.SKIPPED, str(e)))
            return SyncStrategy.DEFAULT, None
        if record is None:
            report.steps.append(
                Step("load_sidecar", StepStatus.SKIPPED, "no sidecar; assuming default strategy")
            )
            return SyncStrategy.DEFAULT, None
        try:
            strategy = parse_sync_strategy(record.sync_strategy)
        except MonoctlError as e:
            report.steps.append(Step("load_sidecar", StepStatus.SKIPPED, e.message))
            return SyncStrategy.DEFAULT, record
        report.steps.append(
            Step("load_sidecar", StepStatus.SUCCESS, f"recorded sync_strategy={strategy.value}")
        )
        return strategy, record

    def _canonical_peers(
        self,
        network: Network,
        strategy: SyncStrategy,
        sidecar: Optional[SidecarRecord],
        peers_url: str,
        report: DoctorReport,
    ) -> tuple[list[Peer], list[Peer]]:
        url = peers_url or network.default_peers_url
        fetch_step, data = fetch_peer_document(self._fetcher, url)
        report.steps.append(fetch_step)
        validate_step, registry = validate_peer_document(network, data)
        report.steps.append(validate_step)

        if registry is not None:
            try:
                seeds, persistent = apply_sync_strategy(strategy, registry)
            except BootstrapUnavailable as e:
                report.steps.append(Step("apply_sync_strategy", StepStatus.SKIPPED, e.message))
            else:
                report.steps.append(Step("canonical_peers", StepStatus.SUCCESS, "from peer document"))
                return seeds, persistent

        if sidecar is not None and sidecar.network == network.name.value:
            seeds = parse_peer_list_string(str(sidecar.canonical.get("seeds", "")))
            persistent = parse_peer_list_string(str(sidecar.canonical.get("persistent_peers", "")))
            report.steps.append(Step(
                "canonical_peers",
                StepStatus.SUCCESS,
                f"from sidecar: {len(seeds)} seeds, {len(persistent)} persistent peers",
            ))
            return seeds, persistent

        report.steps.append(Step("canonical_peers", StepStatus.SUCCESS, "none known; expecting empty lists"))
        return [], []

    def _classify(
        self,
        key: CanonicalKey,
        expected: Any,
        raw: Optional[str],
        network: Network,
        strategy: SyncStrategy,
    ) -> DriftRecord:
        expected_text = str(expected) if not isinstance(expected, bool) else toml_literal(expected)

        def record(severity: Severity, message: str, actual: Optional[str]) -> DriftRecord:
            return DriftRecord(
                key=key.name,
                file=key.file,
                expected=expected_text,
                actual=actual,
                severity=severity,
                message=message,
            )

        if raw is None:
            return record(Severity.WARN, f"{key.location} absent", None)

        try:
            actual: Any = toml_lines.decode_value(raw)
        except ValueError:
            actual = raw
        actual_text = toml_literal(actual) if isinstance(actual, bool) else str(actual)

        if type(actual) is type(expected) and actual == expected:
            return record(Severity.OK, "", actual_text)

        if isinstance(actual, str) and isinstance(expected, str) and _squash(actual) == _squash(expected):
            return record(Severity.INFO, f"{key.location} differs only by whitespace", actual_text)

        if key.name == "evm_chain_id":
            return self._classify_evm(key, expected, actual, actual_text, network, record)

        if key.name == "cosmos_chain_id":
            message = f"{key.location}: expected {expected_text}, got {actual_text}"
            other = network_by_cosmos_chain_id(actual_text)
            if other is not None and other.name != network.name:
                message += f" (chain id of {other.name.value})"
            return record(Severity.CRITICAL, message, actual_text)

        if key.name in PEER_KEYS:
            if isinstance(actual, str) and _peer_set(actual) == _peer_set(expected):
                return record(Severity.INFO, f"{key.location} differs only in order", actual_text)
            return record(
                Severity.CRITICAL,
                f"{key.location} membership differs: expected {expected_text!r}, got {actual_text!r}",
                actual_text,
            )

        if key.name == "pex_enabled":
            return record(
                Severity.WARN,
                f"{key.location} = {actual_text} inconsistent with sync strategy {strategy.value}",
                actual_text,
            )

        return record(
            Severity.WARN,
            f"{key.location}: expected {expected_text!r}, got {actual_text!r}",
            actual_text,
        )

    @staticmethod
    def _classify_evm(key, expected, actual, actual_text, network, record) -> DriftRecord:
        if isinstance(actual, str) and actual.strip().isdigit():
            actual = int(actual.strip())
            if actual == expected:
                return record(
                    Severity.WARN,
                    f"{key.location} is quoted; the node expects the integer {expected}",
                    actual_text,
                )
        if isinstance(actual, int) and not isinstance(actual, bool):
            other = network_by_evm_chain_id(actual)
            if other is not None and other.name != network.name:
                if actual == LOCALNET_EVM_CHAIN_ID:
                    message = (
                        f"Localnet leak: {key.location} is {actual} (Localnet) on a "
                        f"{network.name.value} home, expected {expected}"
                    )
                else:
                    message = (
                        f"{key.location} is {actual} ({other.name.value}) on a "
                        f"{network.name.value} home, expected {expected}"
                    )
                return record(Severity.FATAL, message, actual_text)
        return record(
            Severity.CRITICAL,
            f"{key.location}: expected {expected}, got {actual_text}",
            actual_text,
        )


def format_report(report: DoctorReport) -> str:
    """Human-readable doctor report."""
    if report.error is not None:
        return f"Could not inspect {report.home} for {report.network}: {report.error.message}"
    non_ok = report.non_ok()
    if not non_ok:
        return (
            f"No drift detected for {report.network} "
            f"(sync strategy {report.sync_strategy}). Configuration matches canonical values."
        )
    lines = [f"DRIFT DETECTED for {report.network} (sync strategy {report.sync_strategy}):"]
    for r in non_ok:
        actual = "<absent>" if r.actual is None else repr(r.actual)
        lines.append(f"  [{r.severity.value}] {r.file} {r.key}: expected {r.expected!r}, got {actual}")
        if r.message:
            lines.append(f"      {r.message}")
    if report.worst.rank >= Severity.CRITICAL.rank:
        lines.append("")
        lines.append(f"Run: monoctl repair --network {report.network} --home {report.home}")
    return "\n".join(lines)


def format_repair(result: RepairResult) -> str:
    lines = []
    if result.dry_run:
        lines.append("DRY RUN - no changes made")
        lines.append("")
    lines.append(render_checklist(result.steps))
    if result.success and result.repaired and not result.dry_run:
        lines.append("")
        lines.append("All repairs applied. Run 'monoctl doctor' to verify.")
    return "\n".join(lines)
