"""
FastAPI dependency injection.

Dependencies provide storage clients, replication targets and
configuration to route handlers. Routes never build their own clients,
so tests can override any of these with in-memory versions.

The client builders here are plain functions of Settings so the CLI can
reuse them without going through FastAPI.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.replication.errors import ConfigurationFailure
from ..core.replication.models import TargetEndpoint
from ..core.replication.replicator import ClientFactory
from ..core.replication.storage import ObjectStoreClient
from ..infrastructure.storage.client import (
    MockObjectStore,
    StorageConfig,
    create_object_store_client,
)

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared in-memory store for mock mode (persists across requests)
_mock_object_store: Optional[MockObjectStore] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

def get_mock_object_store(settings: Settings) -> Optional[MockObjectStore]:
    """
    Shared in-memory store, or None outside mock mode.

    The origin bucket and every configured replica bucket are created up
    front so a fresh mock deployment passes preflight.
    """
    global _mock_object_store

    if not settings.storage_mock_mode:
        return None

    if _mock_object_store is None:
        _mock_object_store = MockObjectStore()
        _mock_object_store.create_bucket(settings.r2_bucket_name)
        try:
            for target in settings.replica_targets_list:
                _mock_object_store.create_bucket(target.bucket_identifier)
        except ConfigurationFailure as e:
            # the sync endpoint and the readiness check report this too
            logger.warning("Replica buckets not created in mock store", extra={"error": str(e)})
        logger.info("Created shared mock object store")

    return _mock_object_store


def build_origin_client(settings: Settings) -> ObjectStoreClient:
    """Client for the R2 origin bucket."""
    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        bucket_name=settings.r2_bucket_name,
        endpoint_url=settings.r2_endpoint,
        timeout=settings.transfer_timeout_seconds,
    )
    return create_object_store_client(config, mock_store=get_mock_object_store(settings))


def build_target_client_factory(settings: Settings) -> ClientFactory:
    """Factory that builds an S3 client for each replica target."""
    mock_store = get_mock_object_store(settings)

    def factory(target: TargetEndpoint) -> ObjectStoreClient:
        config = StorageConfig(
            access_key_id=settings.aws_access_key_id,
            secret_access_key=settings.aws_secret_access_key,
            bucket_name=target.bucket_identifier,
            endpoint_url=target.endpoint_url,
            region=target.region,
            timeout=settings.transfer_timeout_seconds,
        )
        return create_object_store_client(config, mock_store=mock_store)

    return factory


def get_origin_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStoreClient:
    """Provide the origin bucket client."""
    return build_origin_client(settings)


def get_target_client_factory(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ClientFactory:
    """Provide the replica client factory."""
    return build_target_client_factory(settings)


def get_replica_targets(
    settings: Annotated[Settings, Depends(get_settings)],
) -> list[TargetEndpoint]:
    """
    Provide the configured replica targets.

    A malformed or empty REPLICA_TARGETS is a client-visible 400: the
    request cannot be served until configuration is fixed, and nothing
    has been transferred yet.
    """
    try:
        targets = settings.replica_targets_list
    except ConfigurationFailure as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    if not targets:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No replica targets configured. Set REPLICA_TARGETS.",
        )

    return targets


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

AuthenticatedUser = Annotated[str, Depends(verify_api_key)]
OriginClientDep = Annotated[ObjectStoreClient, Depends(get_origin_client)]
TargetClientFactoryDep = Annotated[ClientFactory, Depends(get_target_client_factory)]
ReplicaTargetsDep = Annotated[list[TargetEndpoint], Depends(get_replica_targets)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
