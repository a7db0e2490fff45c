"""Incident Commander: incident lifecycle engine for chat-ops incident response."""

__version__ = "0.3.0"
