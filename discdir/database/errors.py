"""
Error types raised by the directory store.
"""


class DatabaseError(Exception):
    """Base class for directory store errors."""
    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when the database cannot be opened or a lock wait times out."""
    pass


class InsertionError(DatabaseError):
    """Raised when an insert or update statement fails."""
    pass


class QueryError(DatabaseError):
    """Raised when a read query fails."""
    pass


class DataParsingError(DatabaseError):
    """Raised when input data is malformed, e.g. a discriminator that is not 8 bytes."""
    pass


class TransactionError(DatabaseError):
    """Raised when a transaction cannot be started or committed."""
    pass


__all__ = [
    'DatabaseError',
    'DatabaseConnectionError',
    'InsertionError',
    'QueryError',
    'DataParsingError',
    'TransactionError',
]
