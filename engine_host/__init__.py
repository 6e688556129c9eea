"""Engine-facing glue: configuration, process context and UI dispatch."""

from .config import get_start_page, load_host_config, save_host_config
from .context import EngineContext, get_engine_context, shutdown_engine_context
from .dispatch import ImmediateDispatcher, QtDispatcher, UiDispatcher
from .session import BridgePort, EngineSession, NavigationListener

__all__ = [
    "get_start_page",
    "load_host_config",
    "save_host_config",
    "EngineContext",
    "get_engine_context",
    "shutdown_engine_context",
    "ImmediateDispatcher",
    "QtDispatcher",
    "UiDispatcher",
    "BridgePort",
    "EngineSession",
    "NavigationListener",
]
