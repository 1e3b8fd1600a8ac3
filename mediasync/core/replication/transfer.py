"""
Transfer Unit: move exactly one object.

A unit never raises for I/O problems and never retries. Whatever goes
wrong comes back as a TransferResult carrying a reason that names the
offending key or path; the scheduler decides what a failure means for
the rest of the tree.
"""

import asyncio
import logging
import os
import shutil

from .content_types import resolve_content_type
from .errors import TransferFailure
from .models import Direction, TransferResult, TransferTask
from .storage import ObjectStoreClient

logger = logging.getLogger(__name__)


class TransferUnit:
    """
    Performs downloads or uploads against one bucket.

    The blocking SDK and filesystem work runs in a worker thread, so
    several units awaited together transfer in parallel. A unit finishes
    only when its thread does; deadlines belong to the client (see
    StorageConfig.timeout).
    """

    def __init__(self, client: ObjectStoreClient, direction: Direction) -> None:
        """
        Args:
            client: Bucket the unit reads from (download) or writes to (upload)
            direction: Which way objects move
        """
        self._client = client
        self._direction = direction

    @property
    def direction(self) -> Direction:
        return self._direction

    async def transfer(self, task: TransferTask) -> TransferResult:
        """Run one transfer and report its outcome."""
        if self._direction == Direction.DOWNLOAD:
            operation, locator = self._download, task.source_locator
        else:
            operation, locator = self._upload, task.destination_locator

        try:
            await asyncio.to_thread(operation, task)
        except Exception as e:
            failure = TransferFailure(locator, str(e))
        else:
            return TransferResult(task=task)

        logger.warning(
            "Transfer failed",
            extra={
                "direction": self._direction.value,
                "relative_path": task.relative_path,
                "error": failure.reason,
            }
        )
        return TransferResult(task=task, error=str(failure))

    def _download(self, task: TransferTask) -> None:
        local_path = task.destination_locator
        os.makedirs(os.path.dirname(local_path) or ".", exist_ok=True)

        body = self._client.get(task.source_locator)
        try:
            with open(local_path, "wb") as f:
                shutil.copyfileobj(body, f)
        finally:
            body.close()

        logger.debug(
            "Downloaded",
            extra={"key": task.source_locator, "path": local_path}
        )

    def _upload(self, task: TransferTask) -> None:
        content_type = resolve_content_type(task.source_locator)

        with open(task.source_locator, "rb") as f:
            self._client.put(task.destination_locator, f, content_type)

        logger.debug(
            "Uploaded",
            extra={"key": task.destination_locator, "content_type": content_type}
        )
