"""Pipeline result models: the observable output of join, doctor and repair.

Front-ends only ever consume these values. Every run returns the full
step list, whatever happened, so a caller can render a checklist.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from monoctl.errors import Cancelled, MonoctlError


EXIT_DONE = 0
EXIT_FAILED = 1
EXIT_FATAL = 2
EXIT_CANCELLED = 3


class StepStatus(str, enum.Enum):
    """Terminal status of a pipeline step."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class Step:
    name: str
    status: StepStatus
    message: str = ""


class Severity(str, enum.Enum):
    """Drift severity, ordered from harmless to refuse-to-repair."""
    OK = "OK"
    INFO = "INFO"
    WARN = "WARN"
    CRITICAL = "CRITICAL"
    FATAL = "FATAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.OK: 0,
    Severity.INFO: 1,
    Severity.WARN: 2,
    Severity.CRITICAL: 3,
    Severity.FATAL: 4,
}


def exit_code_for(error: Optional[MonoctlError]) -> int:
    """Map a result error onto the hosting CLI's exit-code contract."""
    if error is None:
        return EXIT_DONE
    if isinstance(error, Cancelled):
        return EXIT_CANCELLED
    if error.fatal:
        return EXIT_FATAL
    return EXIT_FAILED


@dataclass
class JoinResult:
    """Outcome of one join pipeline run.

    ``error`` is set iff the run stopped on a failed step (or a cancel).
    """
    network: str
    home: str
    dry_run: bool = False
    steps: list[Step] = field(default_factory=list)
    error: Optional[MonoctlError] = None
    chain_id: str = ""
    genesis_path: str = ""
    patch_path: str = ""
    rendered_patch: str = ""

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def fatal(self) -> bool:
        return self.error is not None and self.error.fatal

    @property
    def cancelled(self) -> bool:
        return isinstance(self.error, Cancelled)

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.error)

    def step(self, name: str) -> Optional[Step]:
        for s in self.steps:
            if s.name == name:
                return s
        return None

    def statuses(self) -> dict[str, StepStatus]:
        return {s.name: s.status for s in self.steps}


@dataclass(frozen=True)
class DriftRecord:
    """Comparison of one canonical key against its on-disk value."""
    key: str
    file: str
    expected: str
    actual: Optional[str]
    severity: Severity
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.severity == Severity.OK


@dataclass
class DoctorReport:
    network: str
    home: str
    sync_strategy: str = "default"
    steps: list[Step] = field(default_factory=list)
    records: list[DriftRecord] = field(default_factory=list)
    error: Optional[MonoctlError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def clean(self) -> bool:
        return self.error is None and all(r.ok for r in self.records)

    @property
    def worst(self) -> Severity:
        if not self.records:
            return Severity.OK
        return max((r.severity for r in self.records), key=lambda s: s.rank)

    @property
    def exit_code(self) -> int:
        """2 for FATAL drift, 1 for WARN or CRITICAL, else 0; a failed
        diagnosis maps like any other pipeline error."""
        if self.error is not None:
            return exit_code_for(self.error)
        worst = self.worst
        if worst == Severity.FATAL:
            return EXIT_FATAL
        if worst.rank >= Severity.WARN.rank:
            return EXIT_FAILED
        return EXIT_DONE

    def step(self, name: str) -> Optional[Step]:
        for s in self.steps:
            if s.name == name:
                return s
        return None

    def non_ok(self) -> list[DriftRecord]:
        return [r for r in self.records if not r.ok]

    def by_severity(self, severity: Severity) -> list[DriftRecord]:
        return [r for r in self.records if r.severity == severity]

    def record(self, key: str) -> Optional[DriftRecord]:
        for r in self.records:
            if r.key == key:
                return r
        return None


@dataclass
class RepairResult:
    """Outcome of a repair run: the doctor report it acted on plus the writes."""
    doctor: DoctorReport
    dry_run: bool = False
    steps: list[Step] = field(default_factory=list)
    repaired: list[str] = field(default_factory=list)
    error: Optional[MonoctlError] = None
    rendered: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return exit_code_for(self.error)
