"""Error taxonomy shared by the gateway, services and routes."""


class RegionalStoreError(Exception):
    """Base class for every error raised by this service."""
    pass


class ConfigurationError(RegionalStoreError):
    """A region is not configured, or its connection parameters are incomplete."""
    pass


class RegionNotFoundError(ConfigurationError):
    """The region is not part of the registry."""

    def __init__(self, region: str):
        super().__init__(f"Unknown region: {region}")
        self.region = region


class StorageError(RegionalStoreError):
    """Base for failures talking to a regional store."""
    pass


class StoreConnectionError(StorageError, ConnectionError):
    """A pooled connection could not be obtained within the configured timeout."""
    pass


class QueryError(StorageError):
    """A statement failed server-side."""
    pass


class InvalidRequestError(RegionalStoreError):
    """Bad caller input."""
    pass


class InvalidRegionError(InvalidRequestError):

    def __init__(self, region: str | None):
        super().__init__(f"Invalid region: {region}")
        self.region = region


class EmptyPayloadError(InvalidRequestError):
    pass


class PayloadTooLargeError(InvalidRequestError):

    def __init__(self, limit: int):
        super().__init__(f"File exceeds the maximum upload size of {limit} bytes")
        self.limit = limit


class NotFoundError(RegionalStoreError):
    pass


class UploadFailed(RegionalStoreError):
    """Wraps whatever went wrong while writing an upload to its region."""

    def __init__(self, cause: BaseException):
        super().__init__(safe_error_message(cause, "Upload failed"))
        self.cause = cause


def safe_error_message(e: BaseException, fallback: str = "Unknown error") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions (timeouts in particular) produce an empty str(e).
    This helper falls back to the exception class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg
