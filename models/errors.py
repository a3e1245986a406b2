"""
Exception hierarchy for the signal engine.

Insufficient data is not represented here: a monitor run with too few
mentions returns a normal negative result instead of raising.
"""

from typing import Optional


class SignalEngineError(Exception):
    """Base class; a single handler can catch the whole hierarchy."""

    error_code = "internal_error"

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code


class InvalidConfig(SignalEngineError, ValueError):
    """A threshold or option is outside its allowed range."""

    error_code = "invalid_config"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class RepositoryFailure(SignalEngineError):
    """A mention/trend/cluster/crisis store is unreachable or errored."""

    error_code = "repository_failure"


class RepositoryTimeout(RepositoryFailure):
    error_code = "repository_timeout"


class PreconditionFailed(SignalEngineError):
    """The entity is not in a state that permits the requested operation."""

    error_code = "precondition_failed"


class CrisisNotFound(SignalEngineError, LookupError):
    error_code = "crisis_not_found"

    def __init__(self, crisis_id: str):
        super().__init__(f"Crisis not found: {crisis_id}")
        self.crisis_id = crisis_id


class DownstreamAlertFailure(SignalEngineError):
    """An alert channel failed to deliver."""

    error_code = "downstream_alert_failure"

    def __init__(self, message: str, channel: Optional[str] = None):
        super().__init__(message)
        self.channel = channel
