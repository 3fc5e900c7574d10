from typing import Optional
from pydantic import BaseModel

class ErrorResponse(BaseModel):
    detail: str
    code: Optional[str] = None

class GridError(Exception):
    """Base class for every failure the grid engine reports to callers."""

class ConfigurationError(GridError):
    """Unknown dataset/module key or a broken grid definition."""

class RecordValidationError(GridError):
    """A submitted value violates a schema constraint (mandatory, numeric)."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

class StorageError(GridError):
    """The underlying store rejected a query or write."""

class ImportFileError(GridError):
    """Unreadable upload, missing header, no usable columns or an expired handle."""

class AuthorizationError(GridError):
    """Anti-forgery token missing or not matching the session value."""
