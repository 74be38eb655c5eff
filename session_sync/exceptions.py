"""Session Sync error taxonomy.

Lower layers raise these; ``SyncOrchestrator`` turns them into
``SyncResult`` values so nothing reaches the caller as an unhandled fault.
"""
from typing import Optional


class SyncError(Exception):
    """Base class for all Session Sync errors."""

    message: str = "Sync operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)


class ConfigMissing(SyncError):
    """No sync key is configured; every operation is refused."""

    message = "Sync key is not configured"


class RemoteError(SyncError):
    """The remote store failed or returned a malformed response.

    The service message is carried verbatim.
    """

    message = "Remote store request failed"


class NoData(SyncError):
    """Nothing is stored for the requested origin."""

    message = "No synced data for this origin"

    def __init__(self, origin: Optional[str] = None):
        self.origin = origin
        super().__init__(
            f"No synced data for {origin}" if origin else None
        )


class DecryptFailed(SyncError):
    """Envelope could not be authenticated or decoded.

    Wrong key, corrupted payload and tampering are deliberately
    indistinguishable.
    """

    message = "Decryption failed: wrong sync key or corrupted data"
