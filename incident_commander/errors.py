"""Incident error taxonomy.

Validation, permission and lookup errors are user-correctable and are
raised straight back to the caller. Delivery failures are recorded by the
notification router and never raised past it. Data integrity violations
abort only the operation that discovered them.
"""


class IncidentError(Exception):
    """Base class for all incident engine errors."""

    status_code = 500

    def __init__(self, message: str, user_message: str | None = None):
        super().__init__(message)
        self.user_message = user_message or message


class ValidationError(IncidentError):
    """Bad input, or an operation that is illegal in the incident's current state."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Validation error on field '{field}': {reason}", user_message=reason)


class PermissionDenied(IncidentError):
    """The actor is not the incident commander."""

    status_code = 403

    def __init__(self, user_id: str, action: str):
        self.user_id = user_id
        self.action = action
        super().__init__(
            f"Permission denied: {user_id} cannot {action}",
            user_message=f"Only the incident commander can {action}.",
        )


class NotFound(IncidentError):
    """The incident identifier does not resolve."""

    status_code = 404

    def __init__(self, what: str = "Incident", key: str | None = None):
        self.key = key
        message = f"{what} not found" if key is None else f"{what} {key} not found"
        super().__init__(message, user_message=f"No active {what.lower()} found")


class DeliveryFailure(IncidentError):
    """A single notification could not be delivered."""

    status_code = 502

    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Delivery to {recipient} failed: {reason}")


class DataIntegrityViolation(IncidentError):
    """A stored incident breaks a lifecycle invariant."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, user_message="Incident data is inconsistent; contact an administrator.")


class NotificationConfigError(IncidentError):
    """Malformed notification routing configuration."""

    status_code = 500


class ExternalServiceError(IncidentError):
    """An external collaborator (e.g. the status page) returned an error."""

    status_code = 502

    def __init__(self, service: str, message: str):
        self.service = service
        super().__init__(f"External API error ({service}): {message}")
