from __future__ import annotations


class AssetServerError(Exception):
    pass


class ResourceNotFound(AssetServerError, FileNotFoundError):
    """Raised by resource locators when a location has no backing resource."""


class ServerBindError(AssetServerError, OSError):
    """The loopback listener could not be bound."""
