"""Error hierarchy for HEM.

Error layers:
- HEMError: Base class for all HEM errors
- DomainError: Invalid hook definitions and event data (recoverable, per hook or event)
- InfrastructureError: Collaborator failures like oned, the bus or configuration

Only configuration errors and report timeouts stop the process; everything else
is logged and the receive loop keeps running.
"""


class HEMError(Exception):
    """Base class for all HEM errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)


# =============================================================================
# Domain Errors (single hook or event, never fatal)
# =============================================================================


class DomainError(HEMError):
    """Base class for domain errors."""


class InvalidHookError(DomainError):
    """Hook definition cannot be used (unknown type or underivable key)."""

    def __init__(self, message: str, hook_id: int | None = None) -> None:
        super().__init__(message, code="INVALID_HOOK")
        self.hook_id = hook_id


# =============================================================================
# Infrastructure Errors (collaborators)
# =============================================================================


class InfrastructureError(HEMError):
    """Base class for infrastructure/system errors."""


class ConfigurationError(InfrastructureError):
    """System misconfiguration detected. Fatal at startup."""


class HookSourceError(InfrastructureError):
    """The hook pool could not be retrieved from oned."""


class ReportTimeoutError(InfrastructureError):
    """oned did not acknowledge a report in time. Fatal for the manager."""
