"""
Storage-specific exceptions.
"""


class StorageError(Exception):
    """
    Base exception for storage errors.

    All storage-related exceptions inherit from this base class,
    allowing catch-all error handling when needed.
    """
    pass


class StorageConnectionError(StorageError):
    """
    Storage connection failed or is not open.

    Raised when:
    - Unable to open the database
    - A read or write is attempted before connect()
    """
    pass
