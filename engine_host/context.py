from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .config import default_host_config
from .dispatch import ImmediateDispatcher, UiDispatcher

logger = logging.getLogger("webhost.context")


@dataclass
class EngineContext:
    """Process-wide state shared by every host in the process."""

    config: Dict[str, Any] = field(default_factory=default_host_config)
    dispatcher: UiDispatcher = field(default_factory=ImmediateDispatcher)
    executor: ThreadPoolExecutor = field(
        default_factory=lambda: ThreadPoolExecutor(thread_name_prefix="engine-bg")
    )

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False, cancel_futures=True)


_CONTEXT: Optional[EngineContext] = None
_CONTEXT_LOCK = threading.Lock()


def get_engine_context(
    config: Optional[Dict[str, Any]] = None,
    dispatcher: Optional[UiDispatcher] = None,
) -> EngineContext:
    """Return the process context, creating it on first use.

    Arguments only apply to the call that creates the context; later callers
    receive the existing one unchanged.
    """
    global _CONTEXT
    with _CONTEXT_LOCK:
        if _CONTEXT is None:
            _CONTEXT = EngineContext(
                config=dict(config) if config is not None else default_host_config(),
                dispatcher=dispatcher or ImmediateDispatcher(),
            )
            logger.info("engine context created")
    return _CONTEXT


def shutdown_engine_context() -> None:
    global _CONTEXT
    with _CONTEXT_LOCK:
        context, _CONTEXT = _CONTEXT, None
    if context is not None:
        context.shutdown()


__all__ = ["EngineContext", "get_engine_context", "shutdown_engine_context"]
