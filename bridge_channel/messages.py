from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from . import kinds

logger = logging.getLogger("webhost.bridge")


@dataclass(frozen=True, slots=True)
class ExecuteCommand:
    """Outbound request asking the page to evaluate ``code``."""

    id: int
    code: str

    def to_dict(self) -> Dict[str, object]:
        return {"kind": kinds.EXECUTE, "id": self.id, "code": self.code}


@dataclass(frozen=True, slots=True)
class InboundMessage:
    kind: str
    id: Optional[int] = None
    ok: Optional[bool] = None
    error: Optional[str] = None


def parse_inbound(raw: Union[str, bytes, Dict[str, Any], None]) -> Optional[InboundMessage]:
    """Decode a page message; anything unrecognised yields ``None``."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.debug("Dropping non-JSON bridge message")
            return None
    if not isinstance(raw, dict):
        return None
    kind = str(raw.get("kind") or "").strip().lower()
    if kind not in (kinds.RESULT, kinds.READY):
        return None
    msg_id: Optional[int] = None
    if kind == kinds.RESULT:
        value = raw.get("id")
        if isinstance(value, bool):
            return None
        try:
            msg_id = int(value)
        except (TypeError, ValueError):
            return None
    ok = raw.get("ok")
    error = raw.get("error")
    return InboundMessage(
        kind=kind,
        id=msg_id,
        ok=ok if isinstance(ok, bool) else None,
        error=str(error) if error is not None else None,
    )


__all__ = ["ExecuteCommand", "InboundMessage", "parse_inbound"]
