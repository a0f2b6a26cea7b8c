"""
Exceptions Module - Zero Proxy Attendance System

Error taxonomy shared by the HTTP routes and the Socket.IO handlers.
Every error carries the HTTP status it maps to and renders as the
``{"success": False, "message": ...}`` payload returned to callers.
"""

from typing import Any, Dict


class AttendanceError(Exception):
    """Base class for all errors reported to attendance clients."""

    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {'success': False, 'message': self.message}


class ValidationError(AttendanceError):
    """Malformed request body or missing field."""


class IdentityError(AttendanceError):
    """The caller's device fingerprint could not be resolved."""


class AccessDenied(AttendanceError):
    """Device fingerprint does not match the bound one."""

    status_code = 403


class SessionError(AttendanceError):
    """No session is active for the requested action."""


class ScheduleConflictError(SessionError):
    """More than one timetable entry covers the requested room and time."""


class CodeError(AttendanceError):
    """Submitted code is stale or invalid."""


class StorageError(AttendanceError):
    """Persistence failure, surfaced to callers as a generic failure."""

    status_code = 500

    def __init__(self, message: str = 'A storage error occurred. Please try again.',
                 status_code: int = None):
        super().__init__(message, status_code)
