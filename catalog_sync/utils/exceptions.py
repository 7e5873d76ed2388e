"""
Error taxonomy for the catalog sync.

Errors local to a single model (ValidationError, SchemaUnavailable,
PersistenceError) are recorded on the SyncResult and never abort a pass.
UpstreamUnavailable always aborts. UpstreamError aborts the fetch step it
occurred in; the orchestrator downgrades a failed pricing fetch to
"proceed without pricing".
"""


class CatalogSyncError(Exception):
    """Base exception for catalog sync errors"""


class UpstreamUnavailable(CatalogSyncError):
    """Raised when the provider API fails the connectivity check"""


class UpstreamError(CatalogSyncError):
    """Raised when a provider request fails.

    Attributes:
        status_code: HTTP status returned by the provider, None for transport failures
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(UpstreamError):
    """Raised on HTTP 429; retried internally by the client before surfacing"""

    def __init__(self, message: str = "Rate limit exceeded", status_code: int | None = 429):
        super().__init__(message, status_code=status_code)


class SchemaUnavailable(UpstreamError):
    """Raised when an endpoint has no published OpenAPI schema"""


class ValidationError(CatalogSyncError):
    """Raised when a fetched model record is missing required fields"""


class PersistenceError(CatalogSyncError):
    """Raised when a store read or write fails"""
