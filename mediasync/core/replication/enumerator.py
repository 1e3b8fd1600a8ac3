"""
Tree enumeration: turn a remote prefix or a local directory into tasks.

Both enumerators are lazy async generators. Each blocking step (one
listing page, one directory of the walk) runs in a worker thread, so a
large listing never stalls the event loop and the scheduler can start
transfers before the listing has finished.
"""

import asyncio
import logging
import os
import posixpath
from pathlib import PurePath
from typing import AsyncIterator, Optional

from .errors import EnumerationFailure
from .models import TransferTask
from .storage import ObjectStoreClient

logger = logging.getLogger(__name__)


def join_key(prefix: str, relative_path: str) -> str:
    """Join a remote prefix and a relative path with forward slashes."""
    if not prefix:
        return relative_path
    return posixpath.join(prefix, relative_path)


def relative_key(key: str, prefix: str) -> str:
    """Strip the listing prefix (and one leading slash) from a key."""
    if key.startswith(prefix):
        key = key[len(prefix):]
    if key.startswith("/"):
        key = key[1:]
    return key


def contained_path(relative_path: str) -> Optional[str]:
    """
    Normalise a relative key, or None if it escapes its root.

    "a/./b.ts" and "a//b.ts" become "a/b.ts"; "../x.ts" and "/etc/x" are
    rejected. An empty path stays empty.
    """
    if not relative_path:
        return ""
    normalised = posixpath.normpath(relative_path)
    if normalised == ".":
        return ""
    if posixpath.isabs(normalised) or normalised == ".." or normalised.startswith("../"):
        return None
    return normalised


async def enumerate_remote(
    client: ObjectStoreClient,
    prefix: str,
    destination_root: str,
) -> AsyncIterator[TransferTask]:
    """
    Yield one download task per object under prefix.

    Directory markers (keys ending in "/") are skipped. Every listing page
    is consumed before the generator finishes. The local destination is
    destination_root joined with the key's normalised path relative to
    prefix; a key that would land outside destination_root ends the
    enumeration with EnumerationFailure.
    """
    seen: set[str] = set()
    pages = None

    while True:
        try:
            if pages is None:
                pages = client.list(prefix)
            page = await asyncio.to_thread(next, pages, None)
        except Exception as e:
            raise EnumerationFailure(prefix, str(e))

        if page is None:
            break

        for entry in page:
            if entry.is_directory_marker:
                continue

            relative_path = contained_path(relative_key(entry.key, prefix))
            if relative_path is None:
                raise EnumerationFailure(prefix, f"key {entry.key} resolves outside the prefix")
            if not relative_path or relative_path in seen:
                continue
            seen.add(relative_path)

            yield TransferTask(
                relative_path=relative_path,
                source_locator=entry.key,
                destination_locator=os.path.join(destination_root, *relative_path.split("/")),
            )

    logger.debug(
        "Remote enumeration complete",
        extra={"prefix": prefix, "objects": len(seen)}
    )


async def enumerate_local(
    root: str,
    destination_prefix: str,
) -> AsyncIterator[TransferTask]:
    """
    Yield one upload task per file below root.

    The root and intermediate directories never become tasks. Keys are
    destination_prefix joined with the POSIX form of the path relative to
    root, whatever the host separator is.
    """
    if not os.path.isdir(root):
        raise EnumerationFailure(root, "directory does not exist")

    def _raise(error: OSError) -> None:
        raise error

    walker = os.walk(root, onerror=_raise)
    count = 0

    while True:
        try:
            step = await asyncio.to_thread(next, walker, None)
        except Exception as e:
            raise EnumerationFailure(root, str(e))

        if step is None:
            break

        dirpath, dirnames, filenames = step
        # walk order is not part of the contract, but stable runs are
        # easier to read in logs
        dirnames.sort()

        for name in sorted(filenames):
            path = os.path.join(dirpath, name)
            relative_path = PurePath(os.path.relpath(path, root)).as_posix()
            count += 1

            yield TransferTask(
                relative_path=relative_path,
                source_locator=path,
                destination_locator=join_key(destination_prefix, relative_path),
            )

    logger.debug(
        "Local enumeration complete",
        extra={"root": root, "files": count}
    )
