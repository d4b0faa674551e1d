"""
Engine-wide exception hierarchy.

Every service raises one of these types; blueprints register handlers
against them once and get consistent HTTP status codes everywhere.
Callers branch on the exception class, never on message text.

Usage:
    from pathway_studio.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="PathwayTemplate", resource_id=template_id)
    raise ValidationError("name is required", details={"name": "required"})
"""


class AuthenticationError(Exception):
    """Raised when no principal can be resolved for the current call.

    Maps to HTTP 401.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class NotFoundError(Exception):
    """Raised when a template, phase, version or campaign id does not resolve.

    Args:
        resource: Human-readable entity name (e.g. "PathwayTemplate", "TemplateVersion").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class AuthorizationError(Exception):
    """Base class for guard denials. Maps to HTTP 403."""

    def __init__(self, message: str, resource_id: str | None = None) -> None:
        self.resource_id = resource_id
        super().__init__(message)


class UnauthorizedReadError(AuthorizationError):
    """The principal may not view the requested template or campaign."""


class UnauthorizedWriteError(AuthorizationError):
    """The principal may not modify the requested template or campaign."""


class ValidationError(Exception):
    """Raised when input fails a business rule in the service layer.

    Covers missing required fields, out-of-range indices, unknown phase
    types, invalid lifecycle transitions and non-permutation reorders.

    Maps to HTTP 422.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidBranchTargetError(ValidationError):
    """A branch target is not a sibling phase of the same template."""


class PersistenceError(Exception):
    """Raised when the repository fails underneath a service operation.

    ``operation`` names the public operation (e.g. "rollback") and
    ``step`` the constituent write that failed (e.g. "restore_phases"),
    so callers can decide whether to re-run or alert an operator. The
    whole unit of work has been rolled back by the time this is raised.

    Maps to HTTP 500.
    """

    def __init__(self, operation: str, step: str, message: str | None = None) -> None:
        self.operation = operation
        self.step = step
        msg = f"{operation} failed at step '{step}'"
        if message:
            msg += f": {message}"
        super().__init__(msg)
