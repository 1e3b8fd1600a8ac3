"""
Bounded-concurrency tree replication.

Contains the domain models, the tree enumerators, the transfer unit, the
bounded scheduler, single-target sync and the multi-target replicator.
"""

from .errors import (
    ConfigurationFailure,
    EnumerationFailure,
    PreflightFailure,
    ReplicationError,
    TransferFailure,
)
from .models import (
    Direction,
    PreflightCheck,
    ReplicationOutcome,
    ReplicationReport,
    RunState,
    SyncReport,
    TargetEndpoint,
    TransferResult,
    TransferTask,
)
from .replicator import Replicator, replicate
from .scheduler import BoundedTaskScheduler
from .storage import ObjectEntry, ObjectStoreClient
from .sync import download_directory, sync_tree

__all__ = [
    "ConfigurationFailure",
    "EnumerationFailure",
    "PreflightFailure",
    "ReplicationError",
    "TransferFailure",
    "Direction",
    "PreflightCheck",
    "ReplicationOutcome",
    "ReplicationReport",
    "RunState",
    "SyncReport",
    "TargetEndpoint",
    "TransferResult",
    "TransferTask",
    "Replicator",
    "replicate",
    "BoundedTaskScheduler",
    "ObjectEntry",
    "ObjectStoreClient",
    "download_directory",
    "sync_tree",
]
