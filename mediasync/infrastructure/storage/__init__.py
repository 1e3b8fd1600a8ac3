"""
Object storage integration for replication.

Supports R2 (Cloudflare) and S3 (AWS) via the S3-compatible API.
Includes an in-memory store for local development without credentials.
"""

from .client import (
    MockObjectStore,
    MockObjectStoreClient,
    S3ObjectStoreClient,
    StorageConfig,
    StorageError,
    create_object_store_client,
)

__all__ = [
    "MockObjectStore",
    "MockObjectStoreClient",
    "S3ObjectStoreClient",
    "StorageConfig",
    "StorageError",
    "create_object_store_client",
]
