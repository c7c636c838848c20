"""Custom exception classes for the chunk store."""


class StoreException(Exception):
    """
    Base exception class for all chunk store errors.
    """
    pass


class NotFoundError(StoreException):
    """
    Raised when a file id or filename does not resolve to a visible record.
    """
    pass


class InvalidStateError(StoreException):
    """
    Raised when a lifecycle transition is requested out of sequence.
    """
    pass


class StorageIOError(StoreException):
    """
    Raised when the database is unavailable or rejects a write.
    """
    pass


class CorruptStoreError(StoreException):
    """
    Raised when a chunk is missing mid-range or fails checksum verification.
    """
    pass


class NotAnImageError(StoreException):
    """
    Raised when a file served through the image endpoint is not an image.
    """
    pass


class StoreNotReadyError(StoreException):
    """
    Raised when a request arrives before the store has been opened.
    """
    pass
