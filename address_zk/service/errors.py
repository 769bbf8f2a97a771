"""Message exchange error types."""

from ..zk_protocol.exceptions import AddressZKError


class ProtocolError(AddressZKError):
    """Base error for proof exchange issues."""


class SchemaError(ProtocolError):
    """Raised when a message fails schema validation."""


class SizeLimitError(ProtocolError):
    """Raised when a message exceeds configured size limits."""
