"""Bridge channel between native code and the page's content script."""

from pathlib import Path

from . import kinds
from .channel import EARLY_QUEUE_LIMIT, BridgeChannel
from .messages import ExecuteCommand, InboundMessage, parse_inbound

CONTENT_SCRIPT_PATH = Path(__file__).with_name("content_script.js")


def load_content_script() -> str:
    return CONTENT_SCRIPT_PATH.read_text(encoding="utf-8")


__all__ = [
    "BridgeChannel",
    "EARLY_QUEUE_LIMIT",
    "ExecuteCommand",
    "InboundMessage",
    "parse_inbound",
    "kinds",
    "load_content_script",
]
