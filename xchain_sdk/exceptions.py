"""
Exceptions for the xchain adapter SDK.
"""
from typing import Any, Dict, Optional


class XChainError(Exception):
    """Base exception for all adapter errors"""
    pass


class ConfigError(XChainError):
    """Raised when chain configuration is missing or invalid."""
    pass


class OperationTimeout(XChainError):
    """
    Raised when a bounded operation's deadline elapses.

    The wrapped work may still complete in the background, so callers
    must treat this as "outcome unknown" rather than "aborted".
    """

    def __init__(self, label: str, duration_ms: Optional[int] = None):
        self.label = label
        self.duration_ms = duration_ms
        super().__init__(label)


class TransportError(XChainError):
    """Raised when a remote chain call is rejected or the network fails."""

    def __init__(
        self,
        message: str,
        error_code: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


class NotFoundError(XChainError):
    """Raised when an entity does not exist on-chain."""
    pass


class DecodeSkipped(XChainError):
    """Raised for a single raw record the decoder refuses to normalize."""
    pass


class SequencingConflict(XChainError):
    """
    Raised when the nonce sequencer would hand out a non-increasing value.

    This indicates a broken lock discipline and is a programming error.
    """
    pass


class CapabilityError(XChainError):
    """Raised when an adapter does not support the requested capability."""
    pass
