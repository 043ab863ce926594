# services/errors.py (ingestion error taxonomy)
from __future__ import annotations
from typing import Any, Dict, List, Optional


class UploadError(Exception):
    """Request-level ingestion failure. `error_type` is the tag the API exposes."""
    error_type = "other"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        installation_numbers: Optional[List[str]] = None,
        batch_id: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.installation_numbers = installation_numbers or []
        self.batch_id = batch_id

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"type": self.error_type, "message": self.message}
        if self.installation_numbers:
            detail["installation_numbers"] = self.installation_numbers
        if self.batch_id:
            detail["batch_id"] = self.batch_id
        return detail


class InvalidFormatError(UploadError):
    error_type = "invalid_format"
    status_code = 400


class MissingInstallationError(UploadError):
    error_type = "missing_installation"
    status_code = 400


class PersistenceError(UploadError):
    status_code = 500


class DistributorNotFoundError(UploadError):
    status_code = 404


class InvalidBatchTransition(Exception):
    """Raised when a terminal batch is asked to change state again."""
