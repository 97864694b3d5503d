"""Service artifacts: unit file text and the mesh sidecar configuration."""

from monoctl.service.mesh import MeshConfig
from monoctl.service.systemd import SystemdUnit, render_unit, service_instructions, unit_name

__all__ = ["MeshConfig", "SystemdUnit", "render_unit", "service_instructions", "unit_name"]
