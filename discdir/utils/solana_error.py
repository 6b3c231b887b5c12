"""
Custom error types for Solana RPC operations.
"""


class SolanaError(Exception):
    """Base class for Solana errors."""
    pass


class TransportError(SolanaError):
    """Raised when the upstream ledger is unreachable or rejects a call."""
    pass


class RetryableError(TransportError):
    """Base class for transport errors that can be retried."""
    pass


class RateLimitError(RetryableError):
    """Raised when rate limit is exceeded."""
    pass


class TimeoutError(RetryableError):
    """Raised when request times out."""
    pass


class InvalidAddressError(TransportError):
    """Raised when a program id, account or signature cannot be parsed."""
    pass


class TransactionDecodeError(SolanaError):
    """Raised when a fetched transaction cannot be decoded into instructions."""
    pass


# Public exports
__all__ = [
    'SolanaError',
    'TransportError',
    'RetryableError',
    'RateLimitError',
    'TimeoutError',
    'InvalidAddressError',
    'TransactionDecodeError',
]
