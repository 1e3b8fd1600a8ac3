"""
Error kinds raised by the replication engine.

Configuration and preflight failures stop a run before any object moves.
Enumeration failures end one target's sync. Transfer failures are recorded
per object and only stop admission of new work within their own sync.
"""

from typing import Optional


class ReplicationError(Exception):
    """Base class for replication errors."""
    pass


class ConfigurationFailure(ReplicationError):
    """Raised when a target descriptor or setting is missing or invalid."""
    pass


class EnumerationFailure(ReplicationError):
    """Raised when a remote listing or local walk cannot complete."""
    
    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"failed to enumerate {source}: {reason}")


class TransferFailure(ReplicationError):
    """Raised when one object's download or upload fails."""
    
    def __init__(self, locator: str, reason: str) -> None:
        self.locator = locator
        self.reason = reason
        super().__init__(f"failed to transfer {locator}: {reason}")


class PreflightFailure(ReplicationError):
    """Raised when a destination target is missing or unreachable."""
    
    def __init__(self, target: str, reason: Optional[str] = None) -> None:
        self.target = target
        self.reason = reason or "bucket does not exist or is not accessible"
        super().__init__(f"target {target}: {self.reason}")
