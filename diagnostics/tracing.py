from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

_SPAN_LIMIT = 256
_SPAN_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=_SPAN_LIMIT)
_SPAN_LOCK = threading.Lock()


@dataclass
class Span:
    name: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    start_time: float = field(default_factory=time.monotonic)
    end_time: Optional[float] = None
    error: Optional[str] = None

    def set(self, **attrs: Any) -> None:
        self.attrs.update(attrs)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000.0

    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end_time = time.monotonic()
        if exc is not None:
            self.error = f"{type(exc).__name__}: {exc}"
        record_span(self)


def span(name: str, **attrs: Any) -> Span:
    return Span(name=name, attrs=attrs)


def record_span(span_obj: Span) -> None:
    record = {
        "name": span_obj.name,
        "attrs": dict(span_obj.attrs or {}),
        "duration_ms": span_obj.duration_ms,
        "error": span_obj.error,
    }
    with _SPAN_LOCK:
        _SPAN_BUFFER.append(record)


def get_recent_spans(name: Optional[str] = None) -> List[Dict[str, Any]]:
    with _SPAN_LOCK:
        spans = list(_SPAN_BUFFER)
    if name is None:
        return spans
    return [item for item in spans if item["name"] == name]


def clear_spans() -> None:
    with _SPAN_LOCK:
        _SPAN_BUFFER.clear()
