"""Core data models for monoctl."""

from monoctl.models.network import (
    LOCALNET_EVM_CHAIN_ID,
    Network,
    NetworkName,
    list_networks,
    lookup,
)
from monoctl.models.peer import Peer, PeerRegistry, RPCEndpoints
from monoctl.models.report import (
    DoctorReport,
    DriftRecord,
    JoinResult,
    RepairResult,
    Severity,
    Step,
    StepStatus,
)

__all__ = [
    "LOCALNET_EVM_CHAIN_ID",
    "Network",
    "NetworkName",
    "list_networks",
    "lookup",
    "Peer",
    "PeerRegistry",
    "RPCEndpoints",
    "DoctorReport",
    "DriftRecord",
    "JoinResult",
    "RepairResult",
    "Severity",
    "Step",
    "StepStatus",
]
