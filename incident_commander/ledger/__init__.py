"""Append-only incident ledgers: timeline and audit."""

from .audit import AuditLedger
from .timeline import TimelineLedger

__all__ = ["AuditLedger", "TimelineLedger"]
