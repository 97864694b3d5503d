"""Read-only probes of a running node's RPC surfaces."""

from monoctl.rpc.health import NodeStatus, RPCCheckResult, RPCCheckResults, check_rpc, node_status

__all__ = ["NodeStatus", "RPCCheckResult", "RPCCheckResults", "check_rpc", "node_status"]
