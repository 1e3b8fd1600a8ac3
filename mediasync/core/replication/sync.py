"""
Single-target sync: move one whole tree between a bucket and a local
directory.

This is the one code path for every tree transfer in the service. The
origin download, the output upload and each replica upload differ only in
direction and in which client they are handed.
"""

import logging
import os
import posixpath
from typing import Optional

from .enumerator import enumerate_local, enumerate_remote
from .models import Direction, SyncReport, TargetEndpoint
from .scheduler import DEFAULT_CONCURRENCY, BoundedTaskScheduler
from .storage import ObjectStoreClient
from .transfer import TransferUnit

logger = logging.getLogger(__name__)


def download_directory(staging_root: str, prefix: str) -> str:
    """
    Local directory a remote prefix is downloaded into.

    Named after the last segment of the prefix, e.g. "videos/abc/" ->
    "<staging_root>/abc".
    """
    name = posixpath.basename(prefix.rstrip("/"))
    return os.path.join(staging_root, name)


async def sync_tree(
    source: str,
    destination: str,
    direction: Direction,
    client: ObjectStoreClient,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    target: Optional[TargetEndpoint] = None,
) -> SyncReport:
    """
    Copy every object of one tree to one destination.

    Args:
        source: Remote prefix (download) or local directory (upload)
        destination: Local staging root (download) or remote prefix (upload)
        direction: Which way objects move
        client: Bucket on the remote side of the transfer
        concurrency: Maximum transfers in flight
        target: Replica this sync writes to, recorded in the report

    Returns:
        SyncReport. Failures are reported, not raised.
    """
    scheduler = BoundedTaskScheduler(concurrency)
    unit = TransferUnit(client, direction)

    if direction == Direction.DOWNLOAD:
        local_root = download_directory(destination, source)
        report = SyncReport(direction=direction, destination=local_root, target=target)
        try:
            os.makedirs(local_root, exist_ok=True)
        except OSError as e:
            report.failed = 1
            report.first_error = f"failed to create local directory {local_root}: {e}"
            return report
        tasks = enumerate_remote(client, source, local_root)
    else:
        report = SyncReport(direction=direction, destination=destination, target=target)
        tasks = enumerate_local(source, destination)

    logger.info(
        "Starting tree sync",
        extra={
            "direction": direction.value,
            "source": source,
            "destination": report.destination,
            "target": target.label if target else None,
            "concurrency": concurrency,
        }
    )

    outcome = await scheduler.run(tasks, unit.transfer)

    report.attempted = outcome.attempted
    report.failed = outcome.failed
    report.first_error = outcome.first_error

    if report.succeeded:
        logger.info(
            "Tree sync complete",
            extra={"direction": direction.value, "destination": report.destination, "objects": report.attempted}
        )
    else:
        logger.warning(
            "Tree sync failed",
            extra={
                "direction": direction.value,
                "destination": report.destination,
                "attempted": report.attempted,
                "failed": report.failed,
                "error": report.first_error,
            }
        )

    return report
