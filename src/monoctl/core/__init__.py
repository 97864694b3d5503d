"""Onboarding core: peer parsing, genesis checks, patch generation, disk writes."""

from monoctl.core.config_patch import ConfigPatch, SyncStrategy, generate
from monoctl.core.peers import merge_peers, parse_peer_document

__all__ = ["ConfigPatch", "SyncStrategy", "generate", "merge_peers", "parse_peer_document"]
