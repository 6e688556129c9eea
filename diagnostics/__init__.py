"""Logging, tracing and filesystem diagnostics for the web host."""
