"""Postmortem document generation for resolved incidents."""

from datetime import datetime, timezone
from typing import Optional

from ..errors import DataIntegrityViolation
from ..ledger.timeline import TimelineLedger
from ..utils.timefmt import format_duration
from .severity import IncidentStatus, Severity

_TS_FORMAT = "%Y-%m-%d %H:%M %Z"


def _parse(ts: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(ts) if ts else None


def render_postmortem(incident: dict, events: list[dict], generated_at: Optional[datetime] = None) -> str:
    """Render a Markdown postmortem skeleton from a resolved incident and its timeline.

    Raises:
        DataIntegrityViolation: the incident is resolved but has no resolved_at.
    """
    if IncidentStatus(incident["status"]) is not IncidentStatus.RESOLVED:
        raise ValueError("postmortems can only be rendered for resolved incidents")

    resolved_at = _parse(incident.get("resolved_at"))
    if resolved_at is None:
        raise DataIntegrityViolation(f"Resolved incident {incident['id']} has no resolved_at timestamp")

    declared_at = _parse(incident["declared_at"])
    generated_at = generated_at or datetime.now(timezone.utc)
    severity = Severity(incident["severity"])

    return f"""# Postmortem: {incident['title']} ({declared_at:%Y-%m-%d})

## Incident Summary
- **Duration**: {format_duration(incident.get('duration_minutes'))} ({declared_at.strftime(_TS_FORMAT)} - {resolved_at.strftime(_TS_FORMAT)})
- **Severity**: {severity.label}
- **Status**: Resolved
- **Affected Service**: {incident['affected_service']}
- **Incident Commander**: <@{incident['commander_id']}>
- **Impact**: [TO BE FILLED BY TEAM]
- **Root Cause**: [TO BE FILLED BY TEAM]

## Timeline

{TimelineLedger.format_as_markdown(events)}

## Action Items
- [ ] [TO BE ADDED BY TEAM]

## Lessons Learned
- [TO BE FILLED BY TEAM]

---
*Generated on {generated_at.strftime(_TS_FORMAT)} by Incident Commander*
"""
