"""
QA Release Tracker - Error Taxonomy

Services raise these; the handler registered in app.main turns them into
HTTP responses. Each class carries its own status code.
"""
from typing import Optional


class QAError(Exception):
    """Base class for all tracker errors."""
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(QAError):
    """Unknown or inactive employee code, or password mismatch."""
    status_code = 401
    default_message = "Invalid EmpCode or Password."


class NotEntitled(QAError):
    """Credentials were correct but the employee lacks QA module access."""
    status_code = 401
    default_message = "You are not authorized to access the QA Portal."


class Unauthenticated(QAError):
    """Missing, malformed, expired or otherwise invalid session token."""
    status_code = 401
    default_message = "User not identified"


class TokenExpired(Unauthenticated):
    default_message = "Token has expired"


class TokenInvalid(Unauthenticated):
    default_message = "Could not validate credentials"


class NotAMember(QAError):
    """Caller does not belong to the QA testing team (workflow-level)."""
    status_code = 403
    default_message = "You are not a member of the QA testing team."


class NotTechLead(QAError):
    """Caller is not the tech lead named on the record being decided."""
    status_code = 403
    default_message = "Only the owning tech lead can confirm or return this record."


class ValidationError(QAError):
    """Missing or malformed request fields."""
    status_code = 400
    default_message = "Invalid request"


class InvalidTransition(QAError):
    """A workflow action is not allowed from the record's current status."""
    status_code = 409
    default_message = "Action not allowed in the current verification status"


class NotFound(QAError):
    status_code = 404
    default_message = "Not found"


class StoreError(QAError):
    """Downstream record store failure."""
    status_code = 500
    default_message = "Database error occurred"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None, details: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.details = details
