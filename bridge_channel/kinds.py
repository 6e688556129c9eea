"""Message kinds carried over the bridge port."""

# native -> page
EXECUTE = "execute"

# page -> native
RESULT = "result"
READY = "ready"

# id reserved for flushed early commands; no result is expected
UNCORRELATED_ID = 0

__all__ = ["EXECUTE", "RESULT", "READY", "UNCORRELATED_ID"]
