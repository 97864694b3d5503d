"""Onboarding engine: join pipeline, drift doctor, cancellation."""

from monoctl.engine.cancel import CancelToken
from monoctl.engine.doctor import DriftDoctor
from monoctl.engine.join import JoinOptions, JoinOrchestrator

__all__ = ["CancelToken", "DriftDoctor", "JoinOptions", "JoinOrchestrator"]
