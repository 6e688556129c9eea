"""Loopback asset serving and navigation interception for packaged apps."""

from .errors import AssetServerError, ResourceNotFound, ServerBindError
from .interceptor import LoadDecision, LoadInterceptor, NavigationVerdict
from .locator import DirectoryResourceLocator, OpenForReadResult, ResourceLocator
from .mime import ensure_mime_type, resolve_content_type
from .paths import VirtualPathResolver
from .server import LocalAssetServer, ServerBinding, ServerState

__all__ = [
    "AssetServerError",
    "ResourceNotFound",
    "ServerBindError",
    "LoadDecision",
    "LoadInterceptor",
    "NavigationVerdict",
    "DirectoryResourceLocator",
    "OpenForReadResult",
    "ResourceLocator",
    "ensure_mime_type",
    "resolve_content_type",
    "VirtualPathResolver",
    "LocalAssetServer",
    "ServerBinding",
    "ServerState",
]
