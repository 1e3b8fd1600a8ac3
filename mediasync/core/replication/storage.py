"""
Object store interface used by the replication engine.

The engine only ever needs four operations from a bucket: list a prefix,
read an object, write an object, and check that the bucket exists. Keeping
that surface small means R2, S3, MinIO and the in-memory store used in
tests are interchangeable.
"""

from typing import BinaryIO, Iterator, NamedTuple, Protocol, Sequence


class ObjectEntry(NamedTuple):
    """One key returned by a listing."""
    key: str
    is_directory_marker: bool


class ObjectStoreClient(Protocol):
    """
    Synchronous client bound to a single bucket.

    Methods block; the engine runs them in worker threads. Implementations
    raise on failure and never retry.
    """

    def list(self, prefix: str) -> Iterator[Sequence[ObjectEntry]]:
        """Yield listing pages for every key under prefix."""
        ...

    def get(self, key: str) -> BinaryIO:
        """Open the object at key as a readable byte stream."""
        ...

    def put(self, key: str, body: BinaryIO, content_type: str) -> None:
        """Write body to key with the given Content-Type."""
        ...

    def head(self) -> None:
        """Raise if the bucket is missing or unreachable."""
        ...
