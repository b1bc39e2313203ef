"""Error taxonomy shared by the gate, the venue store and the upload service.

Every error carries the HTTP status it maps to. admin.handler renders them as
``{"ok": false, "error": <message>}``.
"""

from fastapi import status


class AdminError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(AdminError):
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "UNAUTHENTICATED"):
        super().__init__(message)


class Forbidden(AdminError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "FORBIDDEN"):
        super().__init__(message)


class ValidationError(AdminError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(AdminError):
    status_code = status.HTTP_404_NOT_FOUND


class Conflict(AdminError):
    status_code = status.HTTP_409_CONFLICT


class ConfigurationError(AdminError):
    """A required server secret or setting is missing."""


class InvalidToken(Exception):
    """Session token failed verification. Never shown to callers."""
