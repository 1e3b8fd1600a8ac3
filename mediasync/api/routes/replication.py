"""
Replication API endpoints.

The sync flow for one origin prefix:
1. Download the prefix from the R2 origin into a private staging directory
2. Check every replica bucket exists (preflight)
3. Upload the staged tree to all replicas concurrently
4. Remove the staging directory, whatever happened

The upload endpoint pushes a locally prepared output directory (HLS/DASH
renditions) to the origin under a prefix, ready to be synced.
"""

import asyncio
import logging
import os
import shutil
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import AliasChoices, BaseModel, Field

from ...core.replication.models import (
    Direction,
    ReplicationOutcome,
    ReplicationReport,
    SyncReport,
)
from ...core.replication.replicator import Replicator
from ...core.replication.sync import sync_tree
from ..dependencies import (
    AuthenticatedUser,
    OriginClientDep,
    ReplicaTargetsDep,
    SettingsDep,
    TargetClientFactoryDep,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SyncRequest(BaseModel):
    """Request to replicate one origin prefix to every replica."""
    bucket_name: str = Field(
        default="",
        validation_alias=AliasChoices("bucket_name", "bucketName"),
        description="Origin prefix (folder) to replicate",
    )


class UploadRequest(BaseModel):
    """Request to push the local output directory to the origin."""
    remote_prefix: str = Field(
        default="",
        validation_alias=AliasChoices("remote_prefix", "remotePrefix"),
        description="Prefix the output directory is uploaded under",
    )


class TransferSummary(BaseModel):
    """Counters from one single-target sync."""
    direction: str = Field(description="download or upload")
    destination: str = Field(description="Local directory or remote prefix written")
    target: str | None = Field(None, description="Replica bucket@region, if any")
    attempted: int = Field(description="Transfers started")
    failed: int = Field(description="Transfers that failed")
    first_error: str | None = Field(None, description="First recorded failure")


class PreflightFailureItem(BaseModel):
    """A replica that failed the existence check."""
    target: str = Field(description="Replica bucket@region")
    error: str = Field(description="Why the existence check failed")


class SyncResponse(BaseModel):
    """Result of a sync request."""
    message: str = Field(description="Status message")
    outcome: str = Field(description="success, partial or failed")
    download: TransferSummary = Field(description="Origin download")
    targets: list[TransferSummary] = Field(
        default_factory=list,
        description="Per-replica upload results, in configured order",
    )
    preflight_failures: list[PreflightFailureItem] = Field(
        default_factory=list,
        description="Replicas that failed preflight (run aborted before any upload)",
    )
    configuration_error: str | None = Field(None, description="Why the run never started")


class UploadResponse(BaseModel):
    """Result of an upload request."""
    message: str = Field(description="Status message")
    upload: TransferSummary = Field(description="Upload counters")


# ---------------------------------------------------------------------------
# Helper Functions
# ---------------------------------------------------------------------------

def to_summary(report: SyncReport) -> TransferSummary:
    return TransferSummary(**report.to_dict())


def replication_status(report: ReplicationReport) -> tuple[int, str]:
    """Map a replication report to an HTTP status code and message."""
    if report.configuration_error:
        return status.HTTP_500_INTERNAL_SERVER_ERROR, "Replication could not start"
    if report.preflight_failures:
        return status.HTTP_502_BAD_GATEWAY, "Replica preflight failed, nothing was uploaded"

    outcome = report.outcome
    if outcome == ReplicationOutcome.SUCCESS:
        return status.HTTP_200_OK, "Sync completed successfully"
    if outcome == ReplicationOutcome.PARTIAL:
        return status.HTTP_207_MULTI_STATUS, "Sync completed for some replicas"
    return status.HTTP_500_INTERNAL_SERVER_ERROR, "Sync failed for every replica"


async def remove_staging(path: str) -> None:
    if not os.path.exists(path):
        return
    try:
        await asyncio.to_thread(shutil.rmtree, path)
        logger.info("Staging directory deleted", extra={"staging_path": path})
    except OSError as e:
        logger.error(
            "Failed to delete staging directory",
            extra={"staging_path": path, "error": str(e)}
        )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "/sync",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Replicate an origin prefix",
    description="Download a prefix from the origin bucket and copy it to every replica bucket",
    responses={
        207: {"description": "Some replicas failed", "model": SyncResponse},
        502: {"description": "A replica failed preflight", "model": SyncResponse},
    },
)
async def sync_prefix(
    request: SyncRequest,
    response: Response,
    api_key: AuthenticatedUser,
    targets: ReplicaTargetsDep,
    origin: OriginClientDep,
    client_factory: TargetClientFactoryDep,
    settings: SettingsDep,
) -> SyncResponse:
    """
    Replicate one origin prefix to all configured replicas.

    Replicas are independent: one failing does not stop the others, and
    the response lists each replica's counters. The staging directory is
    private to this request and removed before the response is sent.
    """
    prefix = request.bucket_name.strip()
    if not prefix:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="bucketName is required",
        )

    staging_root = os.path.join(settings.staging_dir, uuid4().hex)

    logger.info(
        "Sync started",
        extra={"prefix": prefix, "targets": [t.label for t in targets]}
    )

    try:
        download = await sync_tree(
            prefix,
            staging_root,
            Direction.DOWNLOAD,
            origin,
            concurrency=settings.max_concurrency,
        )

        if not download.succeeded:
            logger.error(
                "Failed to download prefix",
                extra={"prefix": prefix, "error": download.first_error}
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Download failed: {download.first_error}",
            )

        replicator = Replicator(
            client_factory,
            concurrency=settings.max_concurrency,
        )
        report = await replicator.replicate(download.destination, targets)
    finally:
        await remove_staging(staging_root)

    status_code, message = replication_status(report)
    response.status_code = status_code

    return SyncResponse(
        message=message,
        outcome=report.outcome.value,
        download=to_summary(download),
        targets=[to_summary(r) for r in report.reports],
        preflight_failures=[
            PreflightFailureItem(target=check.target.label, error=check.error)
            for check in report.preflight_failures
        ],
        configuration_error=report.configuration_error,
    )


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload output to the origin",
    description="Upload the local output directory to the origin bucket under a prefix",
)
async def upload_output(
    request: UploadRequest,
    api_key: AuthenticatedUser,
    origin: OriginClientDep,
    settings: SettingsDep,
) -> UploadResponse:
    """
    Push the prepared output directory to the origin bucket.

    Existing objects under the prefix are overwritten in place.
    """
    prefix = request.remote_prefix.strip().strip("/")
    if not prefix:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="remotePrefix is required",
        )

    report = await sync_tree(
        settings.output_dir,
        prefix,
        Direction.UPLOAD,
        origin,
        concurrency=settings.max_concurrency,
    )

    if not report.succeeded:
        logger.error(
            "Upload to origin failed",
            extra={"prefix": prefix, "error": report.first_error}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Upload failed: {report.first_error}",
        )

    return UploadResponse(
        message="Upload complete",
        upload=to_summary(report),
    )
