"""
Command-line sync: replicate one origin prefix without the HTTP service.

Usage:
    mediasync-sync videos/show-1
    mediasync-sync videos/show-1 --concurrency 8 --keep-staging

Requires:
    - .env file (or environment) with R2/AWS credentials and REPLICA_TARGETS,
      or STORAGE_MOCK_MODE=true

Exit status: 0 on success, 1 when any replica failed, 2 on configuration
errors.
"""

import argparse
import asyncio
import json
import logging
import os
import shutil
import sys
from uuid import uuid4

from dotenv import load_dotenv

from .api.dependencies import build_origin_client, build_target_client_factory
from .config.settings import Settings
from .core.replication.errors import ConfigurationFailure
from .core.replication.models import Direction
from .core.replication.replicator import Replicator
from .core.replication.sync import sync_tree

logger = logging.getLogger("mediasync.cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


async def run_sync(
    settings: Settings,
    prefix: str,
    staging_dir: str,
    concurrency: int,
    keep_staging: bool = False,
) -> tuple[int, dict]:
    """Download prefix, replicate it, and return (exit status, report)."""
    targets = settings.replica_targets_list
    if not targets:
        raise ConfigurationFailure("No replica targets configured. Set REPLICA_TARGETS.")

    staging_root = os.path.join(staging_dir, uuid4().hex)
    try:
        download = await sync_tree(
            prefix,
            staging_root,
            Direction.DOWNLOAD,
            build_origin_client(settings),
            concurrency=concurrency,
        )
        if not download.succeeded:
            return EXIT_FAILED, {"download": download.to_dict()}

        replicator = Replicator(
            build_target_client_factory(settings),
            concurrency=concurrency,
        )
        report = await replicator.replicate(download.destination, targets)
    finally:
        if not keep_staging and os.path.exists(staging_root):
            shutil.rmtree(staging_root)

    result = {"download": download.to_dict(), **report.to_dict()}
    if report.configuration_error:
        return EXIT_CONFIG, result
    return (EXIT_OK if report.success else EXIT_FAILED), result


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Replicate an origin prefix to every replica bucket')
    parser.add_argument('prefix', help='Origin prefix (folder) to replicate')
    parser.add_argument('--staging-dir', default=None, help='Where to stage the download (default: STAGING_DIR)')
    parser.add_argument('--concurrency', type=int, default=None, help='Transfers in flight per bucket (default: MAX_CONCURRENCY)')
    parser.add_argument('--keep-staging', action='store_true', help='Leave the downloaded tree on disk')
    args = parser.parse_args(argv)

    load_dotenv()

    try:
        settings = Settings()
    except ValueError as e:
        print(f"ERROR: invalid configuration: {e}", file=sys.stderr)
        return EXIT_CONFIG

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=settings.log_level.upper(),
    )

    concurrency = args.concurrency if args.concurrency is not None else settings.max_concurrency
    if concurrency < 1:
        print("ERROR: --concurrency must be at least 1", file=sys.stderr)
        return EXIT_CONFIG

    try:
        status, result = asyncio.run(run_sync(
            settings,
            args.prefix,
            args.staging_dir or settings.staging_dir,
            concurrency,
            keep_staging=args.keep_staging,
        ))
    except ConfigurationFailure as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return EXIT_CONFIG

    print(json.dumps(result, indent=2))
    return status


if __name__ == '__main__':
    sys.exit(main())
