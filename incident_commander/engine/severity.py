"""Severity tiers and incident status values."""

from enum import Enum

from ..errors import ValidationError


class Severity(str, Enum):
    """Incident priority tier. P1 is the most severe, P4 the least."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    P4 = "P4"

    @classmethod
    def parse(cls, value) -> "Severity":
        """Parse a severity from user input, case-insensitively."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValidationError("severity", f"Invalid severity: {value}. Use P1, P2, P3, or P4")

    @property
    def rank(self) -> int:
        """Numeric rank, 1 for P1. Lower is more severe."""
        return int(self.value[1])

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def emoji(self) -> str:
        return _EMOJI[self]

    @property
    def broadcasts(self) -> bool:
        """Whether entering this severity notifies beyond the incident channel."""
        return self in (Severity.P1, Severity.P2)

    def is_escalation_from(self, other: "Severity") -> bool:
        return self.rank < other.rank


_LABELS = {
    Severity.P1: "P1 (Critical)",
    Severity.P2: "P2 (High)",
    Severity.P3: "P3 (Medium)",
    Severity.P4: "P4 (Low)",
}

_EMOJI = {
    Severity.P1: "\U0001F534",
    Severity.P2: "\U0001F7E1",
    Severity.P3: "\U0001F7E2",
    Severity.P4: "\U0001F7E2",
}


class IncidentStatus(str, Enum):
    DECLARED = "declared"
    INVESTIGATING = "investigating"
    IDENTIFIED = "identified"
    MONITORING = "monitoring"
    RESOLVED = "resolved"

    @classmethod
    def parse(cls, value) -> "IncidentStatus":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(s.value for s in cls)
        raise ValidationError("status", f"Invalid status: {value}. Use one of: {allowed}")

    @property
    def is_terminal(self) -> bool:
        return self is IncidentStatus.RESOLVED

    def can_transition_to(self, target: "IncidentStatus") -> bool:
        """Working states are freely reachable; declared is initial only, resolved is terminal."""
        if self.is_terminal or target is self:
            return False
        return target is not IncidentStatus.DECLARED

    @property
    def label(self) -> str:
        return self.value.capitalize()
