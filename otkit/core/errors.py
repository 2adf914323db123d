"""
otkit.core.errors - Exception types raised by the otkit core.

Classes:
    OTKError: Base class for every otkit error
    DecodeError: Malformed protobuf payload, carries the failing byte offset
    PredicateError: Invalid search predicate, raised at construction time
    ReportError: Invalid reporting arguments or unsupported protocol
"""

from __future__ import annotations


class OTKError(Exception):
    """Base class for otkit errors."""


class DecodeError(OTKError):
    """Raised when a payload cannot be decoded.

    Attributes:
        reason: Human readable description of what went wrong
        offset: Byte offset into the input buffer where decoding failed
    """

    def __init__(self, reason: str, offset: int) -> None:
        super().__init__(f"{reason} at byte offset {offset}")
        self.reason = reason
        self.offset = offset


class PredicateError(OTKError, ValueError):
    """Raised when a search predicate references an unknown field or
    carries a literal that does not fit the field."""


class ReportError(OTKError):
    """Raised for invalid report arguments."""
