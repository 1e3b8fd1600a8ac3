"""
Domain models for tree replication.

These models represent the core replication concepts. They have no
dependencies on boto3, FastAPI or the filesystem layout of a deployment;
a target is a region and a bucket, a task is one file's move, a report is
what happened.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .errors import ConfigurationFailure


class Direction(Enum):
    """Which way objects move in a single-target sync."""
    DOWNLOAD = "download"  # remote prefix -> local directory
    UPLOAD = "upload"      # local directory -> remote prefix


class RunState(Enum):
    """
    Lifecycle of one replication run.

    IDLE -> PREFLIGHTING -> (ABORTED | REPLICATING) -> REPORTING -> DONE
    """
    IDLE = "idle"
    PREFLIGHTING = "preflighting"
    ABORTED = "aborted"
    REPLICATING = "replicating"
    REPORTING = "reporting"
    DONE = "done"


class ReplicationOutcome(Enum):
    """How a run ended, from the caller's point of view."""
    SUCCESS = "success"
    PARTIAL = "partial"  # some targets replicated, some failed
    FAILED = "failed"


@dataclass(frozen=True)
class TargetEndpoint:
    """
    One destination object store.

    Frozen because targets are values: the same region and bucket
    always name the same replica.
    """
    region: str
    bucket_identifier: str
    endpoint_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.region.strip():
            raise ConfigurationFailure("Target region cannot be empty")
        if not self.bucket_identifier.strip():
            raise ConfigurationFailure("Target bucket cannot be empty")

    @property
    def label(self) -> str:
        """Human-readable name: bucket@region"""
        return f"{self.bucket_identifier}@{self.region}"


@dataclass(frozen=True)
class TransferTask:
    """
    A single file's move.

    relative_path always uses forward slashes. destination_locator is
    derived from the destination base and relative_path only, so the
    same tree always maps to the same keys.
    """
    relative_path: str
    source_locator: str
    destination_locator: str


@dataclass(frozen=True)
class TransferResult:
    """Outcome of one Transfer Unit invocation."""
    task: TransferTask
    error: Optional[str] = None  # None means success

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    """What one single-target sync did."""
    direction: Direction
    destination: str = ""  # local directory or remote prefix actually written
    target: Optional[TargetEndpoint] = None
    attempted: int = 0
    failed: int = 0
    first_error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failed == 0 and self.first_error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "destination": self.destination,
            "target": self.target.label if self.target else None,
            "attempted": self.attempted,
            "failed": self.failed,
            "first_error": self.first_error,
        }


@dataclass(frozen=True)
class PreflightCheck:
    """Result of probing one target before any transfer."""
    target: TargetEndpoint
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReplicationReport:
    """
    Aggregate result of a fan-out run.

    reports follows the order targets were given. A run that aborted at
    configuration or preflight has no reports at all.
    """
    reports: list[SyncReport] = field(default_factory=list)
    state: RunState = RunState.IDLE
    preflight: list[PreflightCheck] = field(default_factory=list)
    configuration_error: Optional[str] = None

    @property
    def preflight_failures(self) -> list[PreflightCheck]:
        return [check for check in self.preflight if not check.ok]

    @property
    def success(self) -> bool:
        """True iff the run completed and every target has zero failures."""
        if self.state != RunState.DONE or not self.reports:
            return False
        return all(report.failed == 0 for report in self.reports)

    @property
    def outcome(self) -> ReplicationOutcome:
        if self.success:
            return ReplicationOutcome.SUCCESS
        if self.state == RunState.DONE and any(r.failed == 0 for r in self.reports):
            return ReplicationOutcome.PARTIAL
        return ReplicationOutcome.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "outcome": self.outcome.value,
            "state": self.state.value,
            "configuration_error": self.configuration_error,
            "preflight_failures": [
                {"target": check.target.label, "error": check.error}
                for check in self.preflight_failures
            ],
            "targets": [report.to_dict() for report in self.reports],
        }
