"""
Object storage clients for replication.

Supports Cloudflare R2 and AWS S3 through the same S3-compatible API,
with an in-memory mock for local development and tests.

The origin bucket lives on R2 (no egress fees for the players pulling
renditions); replicas live in regional S3 buckets. Both are reached with
boto3, only the endpoint and region differ.
"""

import io
import logging
import threading
import time
from dataclasses import dataclass
from typing import BinaryIO, Collection, Iterator, Optional, Sequence

from ...core.replication.storage import ObjectEntry, ObjectStoreClient

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for one R2/S3-compatible bucket.

    endpoint_url is None for AWS S3 (boto3 resolves it from the region)
    and set for R2 or any other S3-compatible service.

    timeout bounds each connect and each socket read of a single request,
    so a stalled transfer fails inside the call that is blocking on it.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    endpoint_url: Optional[str] = None
    region: str = "auto"  # R2 uses 'auto' for region
    timeout: Optional[float] = None


class S3ObjectStoreClient:
    """
    S3-compatible object store client bound to one bucket.

    Every method is a single boto3 call (or one paginated listing) with
    no retries of our own; boto3's default retry config still applies at
    the HTTP layer.
    """

    def __init__(self, config: StorageConfig, s3_client=None) -> None:
        """
        Initialize the client with boto3.

        s3_client lets tests pass a pre-built client (e.g. wrapped in a
        botocore Stubber).
        """
        self._config = config

        if s3_client is None:
            import boto3
            from botocore.config import Config

            timeouts = {}
            if config.timeout is not None:
                timeouts = {
                    'connect_timeout': config.timeout,
                    'read_timeout': config.timeout,
                }

            boto_config = Config(
                signature_version='s3v4',
                s3={'addressing_style': 'path'},
                **timeouts,
            )

            s3_client = boto3.client(
                's3',
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
                config=boto_config,
            )

        self._s3_client = s3_client

        logger.info(
            "Initialized object store client",
            extra={
                "bucket": config.bucket_name,
                "endpoint": config.endpoint_url,
                "region": config.region,
                "timeout": config.timeout,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    def list(self, prefix: str) -> Iterator[Sequence[ObjectEntry]]:
        """
        List every key under prefix, one page at a time.

        Pages are requested lazily, so a caller that stops iterating
        stops issuing ListObjectsV2 calls.
        """
        paginator = self._s3_client.get_paginator('list_objects_v2')
        pages = paginator.paginate(Bucket=self._config.bucket_name, Prefix=prefix)

        try:
            for page in pages:
                yield [
                    ObjectEntry(obj['Key'], obj['Key'].endswith('/'))
                    for obj in page.get('Contents', [])
                ]
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"bucket": self._config.bucket_name, "prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"List failed for {prefix}: {e}")

    def get(self, key: str) -> BinaryIO:
        """Open an object for reading."""
        try:
            response = self._s3_client.get_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )
            return response['Body']
        except Exception as e:
            logger.error(
                "Failed to download object",
                extra={"bucket": self._config.bucket_name, "key": key, "error": str(e)}
            )
            raise StorageError(f"Download failed for {key}: {e}")

    def put(self, key: str, body: BinaryIO, content_type: str) -> None:
        """Upload an object, overwriting any existing one at key."""
        try:
            self._s3_client.put_object(
                Bucket=self._config.bucket_name,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(
                "Failed to upload object",
                extra={"bucket": self._config.bucket_name, "key": key, "error": str(e)}
            )
            raise StorageError(f"Upload failed for {key}: {e}")

    def head(self) -> None:
        """Check that the bucket exists and our credentials can reach it."""
        try:
            self._s3_client.head_bucket(Bucket=self._config.bucket_name)
        except Exception as e:
            raise StorageError(
                f"Bucket '{self._config.bucket_name}' does not exist or is not "
                f"accessible in region '{self._config.region}': {e}"
            )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockObjectStore:
    """
    In-memory stand-in for a set of buckets.

    Several MockObjectStoreClient instances can share one store, which is
    how tests model an origin bucket and its replicas side by side.
    Access is locked because the engine calls clients from worker threads.
    """

    def __init__(self) -> None:
        # {bucket: {key: (data, content_type)}}
        self._buckets: dict[str, dict[str, tuple[bytes, str]]] = {}
        self._lock = threading.Lock()

    def create_bucket(self, bucket_name: str) -> None:
        with self._lock:
            self._buckets.setdefault(bucket_name, {})

    def has_bucket(self, bucket_name: str) -> bool:
        with self._lock:
            return bucket_name in self._buckets

    def write(self, bucket_name: str, key: str, data: bytes, content_type: str) -> None:
        with self._lock:
            if bucket_name not in self._buckets:
                raise StorageError(f"NoSuchBucket: {bucket_name}")
            self._buckets[bucket_name][key] = (data, content_type)

    def read(self, bucket_name: str, key: str) -> bytes:
        with self._lock:
            objects = self._buckets.get(bucket_name)
            if objects is None:
                raise StorageError(f"NoSuchBucket: {bucket_name}")
            if key not in objects:
                raise StorageError(f"NoSuchKey: {key}")
            return objects[key][0]

    def keys(self, bucket_name: str, prefix: str = "") -> list[str]:
        """Sorted keys under prefix, like ListObjectsV2."""
        with self._lock:
            objects = self._buckets.get(bucket_name)
            if objects is None:
                raise StorageError(f"NoSuchBucket: {bucket_name}")
            return sorted(key for key in objects if key.startswith(prefix))

    def content_type(self, bucket_name: str, key: str) -> str:
        with self._lock:
            return self._buckets[bucket_name][key][1]


class MockObjectStoreClient:
    """
    Client over a MockObjectStore bucket.

    Failure injection lets tests make a specific get/put or the listing
    fail without touching the network:
    - fail_on_get / fail_on_put: keys whose get/put raises StorageError
    - fail_list: listing raises after the first page

    latency makes every get/put block for that many seconds. When it
    exceeds timeout the call blocks for timeout and then raises, the way
    a botocore read timeout fails inside the blocking call.
    """

    def __init__(
        self,
        store: MockObjectStore,
        bucket_name: str,
        page_size: int = 1000,
        fail_on_get: Collection[str] = (),
        fail_on_put: Collection[str] = (),
        fail_list: bool = False,
        latency: float = 0.0,
        timeout: Optional[float] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._store = store
        self._bucket_name = bucket_name
        self._page_size = page_size
        self._fail_on_get = set(fail_on_get)
        self._fail_on_put = set(fail_on_put)
        self._fail_list = fail_list
        self._latency = latency
        self._timeout = timeout
        self.put_calls = 0
        self.get_calls = 0

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def list(self, prefix: str) -> Iterator[Sequence[ObjectEntry]]:
        keys = self._store.keys(self._bucket_name, prefix)
        for page_number, start in enumerate(range(0, len(keys), self._page_size)):
            if self._fail_list and page_number > 0:
                raise StorageError(f"List failed for {prefix}: injected failure")
            yield [
                ObjectEntry(key, key.endswith('/'))
                for key in keys[start:start + self._page_size]
            ]

    def _wait(self, key: str) -> None:
        if not self._latency:
            return
        if self._timeout is not None and self._latency > self._timeout:
            time.sleep(self._timeout)
            raise StorageError(f"Read timeout on {key} after {self._timeout}s")
        time.sleep(self._latency)

    def get(self, key: str) -> BinaryIO:
        self.get_calls += 1
        self._wait(key)
        if key in self._fail_on_get:
            raise StorageError(f"Download failed for {key}: injected failure")
        return io.BytesIO(self._store.read(self._bucket_name, key))

    def put(self, key: str, body: BinaryIO, content_type: str) -> None:
        self.put_calls += 1
        if key in self._fail_on_put:
            raise StorageError(f"Upload failed for {key}: injected failure")
        self._wait(key)
        self._store.write(self._bucket_name, key, body.read(), content_type)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": self._bucket_name, "key": key, "content_type": content_type}
        )

    def head(self) -> None:
        if not self._store.has_bucket(self._bucket_name):
            raise StorageError(
                f"Bucket '{self._bucket_name}' does not exist or is not accessible"
            )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_object_store_client(
    config: StorageConfig,
    mock_store: Optional[MockObjectStore] = None,
) -> ObjectStoreClient:
    """
    Create an object store client for one bucket.

    Args:
        config: Bucket, endpoint and credentials
        mock_store: If given, return an in-memory client over this store

    Returns:
        ObjectStoreClient implementation (S3-compatible or Mock)
    """
    if mock_store is not None:
        return MockObjectStoreClient(mock_store, config.bucket_name, timeout=config.timeout)

    return S3ObjectStoreClient(config)
