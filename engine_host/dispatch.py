from __future__ import annotations

import logging
from typing import Callable, Protocol

from PyQt6 import QtCore

logger = logging.getLogger("webhost.dispatch")


class UiDispatcher(Protocol):
    def call_soon(self, fn: Callable[[], None]) -> None:
        ...


class ImmediateDispatcher:
    """Runs work inline on the calling thread (headless hosts and tests)."""

    def call_soon(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as exc:  # pragma: no cover
            logger.error("dispatched call failed: %s", exc)


class QtDispatcher(QtCore.QObject):
    """Marshals calls onto the thread this object lives on.

    Create it on the engine's UI thread; ``call_soon`` may then be used from
    any worker thread and the work runs from that thread's event loop.
    """

    _invoke = QtCore.pyqtSignal(object)

    def __init__(self, parent: QtCore.QObject | None = None):
        super().__init__(parent)
        self._invoke.connect(self._run, QtCore.Qt.ConnectionType.QueuedConnection)

    def call_soon(self, fn: Callable[[], None]) -> None:
        self._invoke.emit(fn)

    @QtCore.pyqtSlot(object)
    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception as exc:  # pragma: no cover
            logger.error("dispatched call failed: %s", exc)


__all__ = ["UiDispatcher", "ImmediateDispatcher", "QtDispatcher"]
