class OpsFinderError(Exception):
    """Base error for all user-facing OpsFinder exceptions."""


class ConfigurationError(OpsFinderError):
    """Raised when configuration is invalid or incomplete."""


class ProjectNotInitializedError(OpsFinderError):
    """Raised when the data directory or database is missing."""


class ValidationError(OpsFinderError):
    """Raised when an upload, query or parsed workbook breaks an input rule."""


class NotFoundError(OpsFinderError):
    """Raised when a file, sheet or blob does not exist or was deleted."""


class PermissionDeniedError(OpsFinderError):
    """Raised when the requester may not perform the operation."""


class StorageFault(OpsFinderError):
    """Raised when blob bytes cannot be written or read."""


class IndexFault(OpsFinderError):
    """Raised when the cell index cannot be written."""
