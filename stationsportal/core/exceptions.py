from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(DomainError):
    """Raised when the request carries no valid session."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    status_code = 403


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules.

    ``field`` names the offending input when the rule is field-scoped.
    """

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(DomainError):
    """Raised when a referenced entity does not exist."""

    status_code = 404


class StorageError(DomainError):
    """Raised when the database rejects or fails a statement."""

    status_code = 500
