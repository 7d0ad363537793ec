"""
Exception hierarchy for the sync and embedding engine.

How each error is handled:
--------------------------
- TenantNotFoundError: webhook is acknowledged with success, nothing written
- SourceApiError: logged and skipped per page in batch paths; corroborates a
  deletion when the triggering event already implies one
- RequestValidationFailed: HTTP 400 with ``{"error": ...}``
- PersistenceError: surfaced to the caller, earlier rows in the batch stay
- ResourceNotFoundError: HTTP 404 with ``{"error": ...}``
- JobError: recorded on the embedding job with terminal status ``error``
- AssetBackupError: caught per media block, the block keeps its old URL
"""

from typing import Optional


class VistaError(Exception):
    """Base exception for all application errors."""
    pass


class ResourceNotFoundError(VistaError):
    """Raised when a requested record does not exist."""
    pass


class TenantNotFoundError(ResourceNotFoundError):
    """Raised when an event or request cannot be mapped to a profile."""

    def __init__(self, message: str = "Tenant not found", *, database_id: Optional[str] = None):
        super().__init__(message)
        self.database_id = database_id


class SourceApiError(VistaError):
    """Raised when the Notion API answers with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def is_object_not_found(self) -> bool:
        """True when the page or block no longer exists (or is not shared)."""
        return self.code == "object_not_found" or self.status_code == 404

    def __str__(self) -> str:
        base = super().__str__()
        if self.code:
            return f"{base} ({self.status_code} {self.code})"
        return base


class RequestValidationFailed(VistaError):
    """Raised when a request is missing required fields."""
    pass


class PersistenceError(VistaError):
    """Raised when a content write fails."""
    pass


class JobError(VistaError):
    """Raised for embedding job failures and illegal status transitions."""
    pass


class AssetBackupError(VistaError):
    """Raised when one media asset cannot be downloaded or stored."""
    pass
