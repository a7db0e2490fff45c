"""Plain-text (Slack mrkdwn) bodies for incident notifications."""

from ..engine.severity import Severity
from ..utils.timefmt import format_duration


def declared_message(incident: dict) -> str:
    severity = Severity(incident["severity"])
    lines = [
        f"{severity.emoji} *{severity.label} - Incident Declared*",
        f"*Title:* {incident['title']}",
        f"*Service:* {incident['affected_service']}",
        f"*Commander:* <@{incident['commander_id']}>",
    ]
    if incident.get("channel_id"):
        lines.append(f"*Channel:* #{incident['channel_id']}")
    lines.append("_Do NOT post credentials, customer data, or PII in incident channels._")
    return "\n".join(lines)


def severity_change_message(
    incident: dict, old_severity: Severity, changed_by: str, reason: str | None = None
) -> str:
    new_severity = Severity(incident["severity"])
    if new_severity == old_severity:
        direction = "re-confirmed"
    elif new_severity.is_escalation_from(old_severity):
        direction = "escalated"
    else:
        direction = "downgraded"
    lines = [
        f"{new_severity.emoji} *Severity {direction} from {old_severity.label} to {new_severity.label}*",
        f"*Incident:* {incident['title']} ({incident['affected_service']})",
        f"_Changed by <@{changed_by}>_",
    ]
    if reason:
        lines.append(f"Reason: {reason}")
    return "\n".join(lines)


def resolution_message(incident: dict, resolved_by: str) -> str:
    return "\n".join([
        "✅ *RESOLVED*",
        f"*Incident:* {incident['title']}",
        f"*Service:* {incident['affected_service']}",
        f"*Duration:* {format_duration(incident.get('duration_minutes'))}",
        f"_Resolved by <@{resolved_by}>_",
    ])
