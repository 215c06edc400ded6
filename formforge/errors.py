from typing import Dict, Optional

from fastapi import status


class FormForgeError(Exception):
    """Base class for errors raised by the form and response services.

    Each subclass carries the HTTP status the transport layer answers with.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FormForgeError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class UnauthorizedError(FormForgeError):
    status_code = status.HTTP_403_FORBIDDEN


class DuplicateError(FormForgeError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, resource: str, field: str, value):
        super().__init__(f"{resource} with {field} '{value}' already exists")


class StateConflictError(FormForgeError):
    status_code = status.HTTP_409_CONFLICT


class ValidationFailedError(FormForgeError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}
