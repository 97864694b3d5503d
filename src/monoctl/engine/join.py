"""Join orchestrator: the onboarding pipeline for a fresh or re-joining node.

A linear state machine. Steps run strictly in this order:

    fetch_genesis -> validate_genesis -> fetch_peers -> validate_peers
    -> apply_sync_strategy -> verify_sha256 -> write_genesis
    -> clear_addrbook -> write_config_patch

Failure semantics:
- A genesis with the wrong chain id, or whose SHA-256 differs from the
  trusted digest, is fatal. Both checks run before ``write_genesis``, so a
  wrong artifact never reaches disk.
- The peer document is optional: a fetch or validation failure marks the
  step skipped and the run continues without peers.
- Any other failed step stops the run.

Every run returns all nine steps. Steps that were not reached are
``skipped`` with the reason, so a front-end can always draw the full
checklist. Peers are fetched after the genesis but before the digest
check because the peer document may be what supplies the digest; do
not parallelize the two fetches.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from monoctl.core import genesis as genesis_validator
from monoctl.core import writer
from monoctl.core.config_patch import ConfigPatch, SyncStrategy, apply_sync_strategy, generate
from monoctl.core.peers import parse_peer_document
from monoctl.errors import Cancelled, FetchError, MonoctlError
from monoctl.models.network import Network, NetworkName, ensure_not_localnet_leak, lookup
from monoctl.models.peer import Peer, PeerRegistry
from monoctl.models.report import JoinResult, Step, StepStatus
from monoctl.net.fetcher import Fetcher
from monoctl.engine.cancel import CancelToken


logger = logging.getLogger(__name__)


class JoinStep(str, enum.Enum):
    FETCH_GENESIS = "fetch_genesis"
    VALIDATE_GENESIS = "validate_genesis"
    FETCH_PEERS = "fetch_peers"
    VALIDATE_PEERS = "validate_peers"
    APPLY_SYNC_STRATEGY = "apply_sync_strategy"
    VERIFY_SHA256 = "verify_sha256"
    WRITE_GENESIS = "write_genesis"
    CLEAR_ADDRBOOK = "clear_addrbook"
    WRITE_CONFIG_PATCH = "write_config_patch"


PIPELINE: tuple[JoinStep, ...] = tuple(JoinStep)


@dataclass
class JoinOptions:
    network: Union[Network, NetworkName, str]
    home: Union[str, Path]
    sync_strategy: SyncStrategy = SyncStrategy.DEFAULT
    genesis_url: str = ""
    peers_url: str = ""
    expected_sha256: str = ""
    clear_addrbook: bool = False
    external_address: str = ""
    dry_run: bool = False


@dataclass
class _JoinState:
    network: Network
    options: JoinOptions
    genesis: bytes = b""
    peer_document: Optional[bytes] = None
    registry: Optional[PeerRegistry] = None
    seeds: list[Peer] = field(default_factory=list)
    persistent_peers: list[Peer] = field(default_factory=list)
    patch: Optional[ConfigPatch] = None
    genesis_path: str = ""
    patch_path: str = ""
    rendered_patch: str = ""


_Outcome = tuple[StepStatus, str]


def fetch_peer_document(
    fetcher: Fetcher, url: str, step_name: str = JoinStep.FETCH_PEERS.value
) -> tuple[Step, Optional[bytes]]:
    """Fetch the peer document. Failure is a skipped step, never an error."""
    if not url:
        return Step(step_name, StepStatus.SKIPPED, "no peers URL for this network"), None
    try:
        data = fetcher.fetch(url)
    except FetchError as e:
        logger.warning("failed to download peers, continuing without: %s", e)
        return Step(step_name, StepStatus.SKIPPED, e.message), None
    return Step(step_name, StepStatus.SUCCESS, f"{len(data)} bytes from {url}"), data


def validate_peer_document(
    network: Network,
    data: Optional[bytes],
    step_name: str = JoinStep.VALIDATE_PEERS.value,
) -> tuple[Step, Optional[PeerRegistry]]:
    """Validate a fetched peer document against the network.

    A document for another chain, or one that fails validation, yields a
    skipped step and no registry: none of its peers may be used.
    """
    if data is None:
        return Step(step_name, StepStatus.SKIPPED, "no peer document"), None
    try:
        registry = parse_peer_document(data, network.cosmos_chain_id, network.evm_chain_id)
    except MonoctlError as e:
        logger.warning("peer document rejected: %s", e)
        return Step(step_name, StepStatus.SKIPPED, e.message), None
    message = registry.summary()
    if registry.dropped:
        message += f" ({len(registry.dropped)} malformed dropped)"
    return Step(step_name, StepStatus.SUCCESS, message), registry


_STATUS_MARK = {
    StepStatus.SUCCESS: "✓",
    StepStatus.FAILED: "✗",
    StepStatus.SKIPPED: "-",
}


def render_checklist(steps: list[Step]) -> str:
    """Terminal checklist, one line per step."""
    lines = []
    for step in steps:
        line = f"  {_STATUS_MARK[step.status]} {step.name}"
        if step.message:
            line += f": {step.message}"
        lines.append(line)
    return "\n".join(lines)


class JoinOrchestrator:
    """Runs the join pipeline against one node home.

    Usage:
        orchestrator = JoinOrchestrator(HTTPFetcher())
        result = orchestrator.run(JoinOptions(network="Sprintnet", home="/var/lib/monod"))
        sys.exit(result.exit_code)

    The caller must not run two orchestrators against the same home at
    once; no lock file is taken.
    """

    def __init__(self, fetcher: Fetcher) -> None:
        self._fetcher = fetcher
        self._handlers: dict[JoinStep, Callable[[_JoinState], _Outcome]] = {
            JoinStep.FETCH_GENESIS: self._fetch_genesis,
            JoinStep.VALIDATE_GENESIS: self._validate_genesis,
            JoinStep.FETCH_PEERS: self._fetch_peers,
            JoinStep.VALIDATE_PEERS: self._validate_peers,
            JoinStep.APPLY_SYNC_STRATEGY: self._apply_sync_strategy,
            JoinStep.VERIFY_SHA256: self._verify_sha256,
            JoinStep.WRITE_GENESIS: self._write_genesis,
            JoinStep.CLEAR_ADDRBOOK: self._clear_addrbook,
            JoinStep.WRITE_CONFIG_PATCH: self._write_config_patch,
        }

    def run(self, options: JoinOptions, cancel: Optional[CancelToken] = None) -> JoinResult:
        """Execute the pipeline. Raises NetworkUnknown for an out-of-set name;
        every other error is returned on the result."""
        network = options.network if isinstance(options.network, Network) else lookup(options.network)
        state = _JoinState(network=network, options=options)
        result = JoinResult(
            network=network.name.value,
            home=str(options.home),
            dry_run=options.dry_run,
        )

        previous = "start"
        for index, step in enumerate(PIPELINE):
            if cancel is not None and cancel.cancelled:
                result.error = Cancelled(previous)
                logger.warning("join cancelled after %s", previous)
                self._skip_rest(result, PIPELINE[index:], "cancelled")
                break

            logger.info("join step %s", step.value)
            try:
                status, message = self._handlers[step](state)
            except MonoctlError as e:
                result.steps.append(Step(step.value, StepStatus.FAILED, e.message))
                result.error = e
                if e.fatal:
                    logger.error("FATAL at %s: %s", step.value, e.message)
                else:
                    logger.error("join failed at %s: %s", step.value, e.message)
                self._skip_rest(result, PIPELINE[index + 1:], f"not reached: {step.value} failed")
                break

            result.steps.append(Step(step.value, status, message))
            if step == JoinStep.VALIDATE_GENESIS:
                result.chain_id = network.cosmos_chain_id
            previous = step.value

        result.genesis_path = state.genesis_path
        result.patch_path = state.patch_path
        result.rendered_patch = state.rendered_patch
        if result.success:
            logger.info("join complete for %s", network.name.value)
        return result

    @staticmethod
    def _skip_rest(result: JoinResult, steps: tuple[JoinStep, ...], reason: str) -> None:
        for step in steps:
            result.steps.append(Step(step.value, StepStatus.SKIPPED, reason))

    # --- step handlers -------------------------------------------------

    def _fetch_genesis(self, state: _JoinState) -> _Outcome:
        url = state.options.genesis_url or state.network.default_genesis_url
        if not url:
            raise FetchError(
                "<none>", f"no genesis URL configured for {state.network.name.value}"
            )
        state.genesis = self._fetcher.fetch(url)
        return StepStatus.SUCCESS, f"{len(state.genesis)} bytes from {url}"

    def _validate_genesis(self, state: _JoinState) -> _Outcome:
        chain_id = genesis_validator.check_chain_id(state.genesis, state.network.cosmos_chain_id)
        return StepStatus.SUCCESS, f"chain_id {chain_id}"

    def _fetch_peers(self, state: _JoinState) -> _Outcome:
        url = state.options.peers_url or state.network.default_peers_url
        step, state.peer_document = fetch_peer_document(self._fetcher, url)
        return step.status, step.message

    def _validate_peers(self, state: _JoinState) -> _Outcome:
        step, state.registry = validate_peer_document(state.network, state.peer_document)
        return step.status, step.message

    def _apply_sync_strategy(self, state: _JoinState) -> _Outcome:
        options = state.options
        strategy = options.sync_strategy
        state.seeds, state.persistent_peers = apply_sync_strategy(strategy, state.registry)
        state.patch = generate(
            state.network,
            strategy,
            state.seeds,
            state.persistent_peers,
            external_address=options.external_address,
        )
        # checked before any write
        ensure_not_localnet_leak(state.network, state.patch.evm_chain_id)
        pex = "true" if state.patch.pex_enabled else "false"
        return StepStatus.SUCCESS, (
            f"{strategy.value}: pex={pex}, {len(state.seeds)} seeds, "
            f"{len(state.persistent_peers)} persistent peers"
        )

    def _verify_sha256(self, state: _JoinState) -> _Outcome:
        expected = state.options.expected_sha256
        source = "operator"
        if not expected and state.registry is not None and state.registry.genesis_sha256:
            expected = state.registry.genesis_sha256
            source = "peer document"
        if not expected:
            return StepStatus.SKIPPED, "no trusted digest known"
        actual = genesis_validator.verify_digest(state.genesis, expected)
        return StepStatus.SUCCESS, f"{actual} (from {source})"

    def _write_genesis(self, state: _JoinState) -> _Outcome:
        path = writer.write_genesis(state.options.home, state.genesis, state.options.dry_run)
        state.genesis_path = str(path)
        if state.options.dry_run:
            return StepStatus.SUCCESS, f"(dry-run) {path}"
        return StepStatus.SUCCESS, str(path)

    def _clear_addrbook(self, state: _JoinState) -> _Outcome:
        options = state.options
        if options.sync_strategy != SyncStrategy.BOOTSTRAP and not options.clear_addrbook:
            return StepStatus.SKIPPED, "not required"
        removed = writer.clear_addrbook(options.home, options.dry_run)
        message = "addrbook.json removed" if removed else "addrbook.json not present"
        if options.dry_run:
            message = f"(dry-run) {message}"
        return StepStatus.SUCCESS, message

    def _write_config_patch(self, state: _JoinState) -> _Outcome:
        options = state.options
        path, state.rendered_patch = writer.write_patch(options.home, state.patch, options.dry_run)
        state.patch_path = str(path)
        if options.dry_run:
            return StepStatus.SUCCESS, f"(dry-run) {path}"
        return StepStatus.SUCCESS, str(path)
