"""Domain errors. Each class fixes the envelope ``error`` code and HTTP status."""

from typing import Any


class PromptArenaError(Exception):
    code = "INTERNAL"
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(PromptArenaError):
    code = "VALIDATION"
    status_code = 400
    default_message = "Request validation failed"


class NotFoundError(PromptArenaError):
    """Absent, or present but owned by another org: callers cannot tell which."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None):
        if resource_id:
            super().__init__(f"{resource} '{resource_id}' not found")
        else:
            super().__init__(f"{resource} not found")


class DuplicateError(PromptArenaError):
    code = "DUPLICATE"
    status_code = 400
    default_message = "Already exists in this organization"


class InUseError(PromptArenaError):
    code = "IN_USE"
    status_code = 400
    default_message = "Still referenced by other resources"


class AuthenticationError(PromptArenaError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Authentication required"


class OrgRequiredError(PromptArenaError):
    code = "ORG_REQUIRED"
    status_code = 403
    default_message = "An active organization is required"


class AuthorizationError(PromptArenaError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Forbidden"


class LastAdminError(AuthorizationError):
    default_message = "Cannot remove the last admin"


class ServerMisconfiguredError(PromptArenaError):
    code = "SERVER_MISCONFIGURED"
    status_code = 500
    default_message = "Server misconfigured"


class ServiceUnavailableError(PromptArenaError):
    code = "SERVICE_UNAVAILABLE"
    status_code = 503
    default_message = "Service temporarily unavailable"


_BY_CODE = {
    cls.code: cls
    for cls in (ValidationError, DuplicateError, InUseError, AuthorizationError, ServiceUnavailableError)
}


def error_class_for(code: str) -> type[PromptArenaError]:
    """Exception class raised for a service-level failure ``code``."""
    return _BY_CODE.get(code, PromptArenaError)
