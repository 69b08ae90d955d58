"""Drive API client module."""

from .client import DriveClient, TransportError, AuthenticationError

__all__ = ["DriveClient", "TransportError", "AuthenticationError"]
