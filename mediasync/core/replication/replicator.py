"""
Multi-target fan-out: push one local tree to every replica bucket.

A run is all-or-nothing at the gate (every target must pass preflight
before any object moves) and independent afterwards (a failing replica
does not stop the others). The caller always gets a ReplicationReport
back, whether the run succeeded, partially succeeded, or never started.
"""

import asyncio
import logging
import os
from typing import Callable, Optional, Sequence

from .errors import PreflightFailure
from .models import (
    Direction,
    PreflightCheck,
    ReplicationReport,
    RunState,
    TargetEndpoint,
)
from .scheduler import DEFAULT_CONCURRENCY
from .storage import ObjectStoreClient
from .sync import sync_tree

logger = logging.getLogger(__name__)

ClientFactory = Callable[[TargetEndpoint], ObjectStoreClient]


class Replicator:
    """
    Replicates a local directory to a set of targets.

    The replicator holds no per-run state; each replicate() call builds
    its own clients, report and schedulers.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        concurrency: int = DEFAULT_CONCURRENCY,
    ) -> None:
        """
        Args:
            client_factory: Builds a bucket client for a target
            concurrency: Transfer ceiling per target
        """
        self._client_factory = client_factory
        self._concurrency = concurrency

    async def replicate(
        self,
        local_source_dir: str,
        targets: Sequence[TargetEndpoint],
        remote_prefix: Optional[str] = None,
    ) -> ReplicationReport:
        """
        Upload local_source_dir to every target under remote_prefix.

        remote_prefix defaults to the directory's own name, so
        "downloads/show-1" lands at "show-1/..." in every replica.
        """
        report = ReplicationReport()
        targets = list(targets)

        if not targets:
            return self._abort(report, "No replication targets configured")
        if self._concurrency < 1:
            return self._abort(report, f"Concurrency limit must be at least 1, got {self._concurrency}")
        if not os.path.isdir(local_source_dir):
            return self._abort(report, f"Source directory does not exist: {local_source_dir}")

        if remote_prefix is None:
            remote_prefix = os.path.basename(os.path.normpath(local_source_dir))

        try:
            clients = [self._client_factory(target) for target in targets]
        except Exception as e:
            return self._abort(report, f"Failed to create storage client: {e}")

        # Preflight: every target must exist before anything is written
        self._transition(report, RunState.PREFLIGHTING)
        report.preflight = list(await asyncio.gather(*(
            self._check(target, client)
            for target, client in zip(targets, clients)
        )))

        failures = report.preflight_failures
        if failures:
            self._transition(report, RunState.ABORTED)
            logger.error(
                "Preflight failed, replication aborted",
                extra={"failed_targets": [check.target.label for check in failures]}
            )
            return report

        self._transition(report, RunState.REPLICATING)
        reports = await asyncio.gather(*(
            sync_tree(
                local_source_dir,
                remote_prefix,
                Direction.UPLOAD,
                client,
                concurrency=self._concurrency,
                target=target,
            )
            for target, client in zip(targets, clients)
        ))

        self._transition(report, RunState.REPORTING)
        report.reports = list(reports)
        self._transition(report, RunState.DONE)

        logger.info(
            "Replication finished",
            extra={
                "outcome": report.outcome.value,
                "targets": len(targets),
                "failed_targets": [r.target.label for r in report.reports if r.failed],
            }
        )

        return report

    async def _check(self, target: TargetEndpoint, client: ObjectStoreClient) -> PreflightCheck:
        try:
            await asyncio.to_thread(client.head)
        except Exception as e:
            failure = PreflightFailure(target.label, str(e))
            logger.warning(
                "Target failed preflight",
                extra={"target": target.label, "error": failure.reason}
            )
            return PreflightCheck(target=target, error=str(failure))

        logger.debug("Target passed preflight", extra={"target": target.label})
        return PreflightCheck(target=target)

    def _abort(self, report: ReplicationReport, reason: str) -> ReplicationReport:
        report.configuration_error = reason
        self._transition(report, RunState.ABORTED)
        logger.error("Replication not started", extra={"error": reason})
        return report

    @staticmethod
    def _transition(report: ReplicationReport, state: RunState) -> None:
        logger.info(
            "Replication state change",
            extra={"from_state": report.state.value, "to_state": state.value}
        )
        report.state = state


async def replicate(
    local_source_dir: str,
    targets: Sequence[TargetEndpoint],
    client_factory: ClientFactory,
    *,
    remote_prefix: Optional[str] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> ReplicationReport:
    """Convenience wrapper: one-off Replicator run."""
    replicator = Replicator(client_factory, concurrency=concurrency)
    return await replicator.replicate(local_source_dir, targets, remote_prefix=remote_prefix)
