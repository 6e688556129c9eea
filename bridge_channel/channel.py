from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from engine_host.session import BridgePort, ResultCallback

from . import kinds
from .messages import ExecuteCommand, parse_inbound

logger = logging.getLogger("webhost.bridge")

EARLY_QUEUE_LIMIT = 256


def _noop(_value: Optional[str]) -> None:
    return None


class BridgeChannel:
    """Correlated execute/result traffic over a single page port.

    Commands sent before a port is attached are kept in a bounded early queue
    (oldest dropped first) and flushed uncorrelated once the port shows up.
    Only the most recently attached port is current; messages and detach
    events from superseded ports are ignored.

    Callbacks fire at most once. Requests still outstanding when their port
    goes away are never answered.
    """

    def __init__(self, early_queue_limit: int = EARLY_QUEUE_LIMIT):
        self._early_queue_limit = max(1, int(early_queue_limit))
        self._port_lock = threading.Lock()
        self._port: Optional[BridgePort] = None
        self._pending_lock = threading.Lock()
        self._pending: Dict[int, ResultCallback] = {}
        self._next_id = 1
        self._queue_lock = threading.Lock()
        self._early: Deque[str] = deque(maxlen=self._early_queue_limit)

    @property
    def current_port(self) -> Optional[BridgePort]:
        return self._port

    def send(self, code: str, on_result: Optional[ResultCallback] = None) -> int:
        """Send ``code`` to the page. Returns the sequence id, 0 if not correlated."""
        callback = on_result or _noop
        # the port is published before a flush takes the queue lock, so a
        # command queued here is always seen by that flush
        with self._queue_lock:
            port = self._port
            if port is None:
                self._early.append(code)
        if port is None:
            self._deliver(callback)
            return kinds.UNCORRELATED_ID

        with self._pending_lock:
            msg_id = self._next_id
            self._next_id += 1
            self._pending[msg_id] = callback
        try:
            port.post_message(ExecuteCommand(msg_id, code).to_dict())
        except Exception as exc:
            logger.error("bridge send %s failed: %s", msg_id, exc)
            with self._pending_lock:
                self._pending.pop(msg_id, None)
            self._deliver(callback)
            return kinds.UNCORRELATED_ID
        return msg_id

    def on_channel_attached(self, port: BridgePort) -> None:
        with self._port_lock:
            self._port = port
        logger.info("bridge port connected")
        self.flush_early_queue()

    def on_channel_detached(self, port: BridgePort) -> bool:
        with self._port_lock:
            if self._port is not port:
                logger.debug("ignoring detach from superseded port")
                return False
            self._port = None
        logger.info("bridge port disconnected (%d pending)", self.pending_count())
        return True

    def on_message(self, message: Any, port: Optional[BridgePort] = None) -> None:
        if port is not None and port is not self._port:
            logger.debug("dropping message from superseded port")
            return
        inbound = parse_inbound(message)
        if inbound is None:
            return
        if inbound.kind == kinds.READY:
            logger.debug("bridge READY")
            self.flush_early_queue()
            return
        with self._pending_lock:
            callback = self._pending.pop(inbound.id, None)
        if callback is None:
            logger.debug("no pending request for result id %s", inbound.id)
            return
        if inbound.ok is False:
            logger.warning("page reported failure for %s: %s", inbound.id, inbound.error)
        self._deliver(callback)

    def flush_early_queue(self) -> int:
        port = self._port
        if port is None:
            return 0
        with self._queue_lock:
            to_send = list(self._early)
            self._early.clear()
        for code in to_send:
            try:
                port.post_message(ExecuteCommand(kinds.UNCORRELATED_ID, code).to_dict())
            except Exception as exc:
                logger.error("bridge flush failed: %s", exc)
        return len(to_send)

    def teardown(self) -> None:
        """Forget the port, the early queue and every outstanding callback."""
        with self._port_lock:
            self._port = None
        with self._queue_lock:
            self._early = deque(maxlen=self._early_queue_limit)
        with self._pending_lock:
            dropped = len(self._pending)
            self._pending.clear()
        if dropped:
            logger.info("bridge teardown dropped %d pending callbacks", dropped)

    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    def pending_ids(self) -> List[int]:
        with self._pending_lock:
            return sorted(self._pending)

    def early_queue_snapshot(self) -> List[str]:
        with self._queue_lock:
            return list(self._early)

    @staticmethod
    def _deliver(callback: ResultCallback) -> None:
        try:
            callback(None)
        except Exception as exc:  # pragma: no cover
            logger.error("bridge result callback error: %s", exc)


__all__ = ["BridgeChannel", "EARLY_QUEUE_LIMIT"]
