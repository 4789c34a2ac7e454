class PreflightError(Exception):
    """Base class for errors raised while processing a preflight job."""

    retryable = False


class StorageError(PreflightError):
    retryable = True


class StorageNotFound(StorageError):
    """The key does not exist on the backend (yet)."""


class StorageTransportError(StorageError):
    """Network or backend failure while talking to storage."""


class DownloadValidationError(StorageError):
    """The downloaded file is too small or otherwise truncated."""


class ConversionError(PreflightError):
    pass


class ConversionTimeout(ConversionError):
    retryable = True


class ThumbnailError(PreflightError):
    pass


class ShopNotFound(PreflightError):
    pass


class ItemNotFound(PreflightError):
    pass
