from __future__ import annotations


class PortalError(Exception):
    """Base class for errors surfaced by portal operations."""


class AuthenticationError(PortalError):
    pass


class AccessDeniedError(PortalError):
    pass


class NotFoundError(PortalError):
    pass


class SyncError(PortalError):
    pass


class ValidationError(PortalError):
    pass
