"""Error taxonomy of the vector sync pipeline.

Only configuration errors are fatal. Everything here is either retried,
recorded as a per-document error, or logged and survived by the caller.
"""


class VectorSyncError(Exception):
    """Base class for all pipeline errors."""


class TransientProviderError(VectorSyncError):
    """Network failure, timeout, rate limit or 5xx from the embedding provider.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
        retry_after: Delay in seconds the provider asked for, if any.
    """

    def __init__(self, message: str, status_code: int | None = None, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class PermanentProviderError(VectorSyncError):
    """Provider rejected the request in a way retrying cannot fix (4xx, malformed response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WatchSubscriptionError(VectorSyncError):
    """A change feed subscription could not be opened or broke while streaming."""


class DiscoveryError(VectorSyncError):
    """Document type discovery failed for a collection or type."""


class IndexCreationError(VectorSyncError):
    """The index backend failed with something other than 'exists' or 'unsupported'."""
