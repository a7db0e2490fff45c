"""Tests for postmortem rendering."""

from datetime import datetime, timezone

import pytest

from incident_commander.engine.postmortem import render_postmortem
from incident_commander.errors import DataIntegrityViolation


def _resolved_incident(**overrides):
    incident = {
        "id": "abc",
        "title": "Search index stale",
        "severity": "P2",
        "status": "resolved",
        "affected_service": "search",
        "commander_id": "U-ALICE",
        "declared_at": "2024-03-15T14:00:00+00:00",
        "resolved_at": "2024-03-15T15:30:00+00:00",
        "duration_minutes": 90,
    }
    incident.update(overrides)
    return incident


EVENTS = [
    {"event_type": "declared", "message": "Incident declared: Search index stale",
     "timestamp": "2024-03-15T14:00:00+00:00"},
    {"event_type": "status_update", "message": "Reindex started",
     "timestamp": "2024-03-15T14:20:00+00:00"},
    {"event_type": "resolved", "message": "Incident resolved (duration: 1h 30min)",
     "timestamp": "2024-03-15T15:30:00+00:00"},
]


def test_render_postmortem_sections():
    document = render_postmortem(
        _resolved_incident(), EVENTS, generated_at=datetime(2024, 3, 16, 9, 0, tzinfo=timezone.utc)
    )

    assert document.startswith("# Postmortem: Search index stale (2024-03-15)")
    assert "- **Duration**: 1h 30min (2024-03-15 14:00 UTC - 2024-03-15 15:30 UTC)" in document
    assert "- **Severity**: P2 (High)" in document
    assert "**14:20** - " in document
    assert "→ Reindex started" in document
    for heading in ("## Incident Summary", "## Timeline", "## Action Items", "## Lessons Learned"):
        assert heading in document
    assert "*Generated on 2024-03-16 09:00 UTC by Incident Commander*" in document


def test_render_postmortem_empty_timeline():
    document = render_postmortem(_resolved_incident(), [])
    assert "_No timeline events yet._" in document


def test_render_requires_resolved_status():
    with pytest.raises(ValueError):
        render_postmortem(_resolved_incident(status="monitoring"), EVENTS)


def test_missing_resolved_at_is_integrity_violation():
    with pytest.raises(DataIntegrityViolation):
        render_postmortem(_resolved_incident(resolved_at=None), EVENTS)
