"""
Calendar Management Errors
===========================
Read-path code catches these and records a message; write-path code
records a message and re-raises.
"""

from typing import List, Optional


# ==================== CUSTOM EXCEPTIONS ====================

class CalendarAdminError(Exception):
    """Base exception for calendar administration errors"""
    pass


class NotFoundError(CalendarAdminError):
    """Raised when a division or calendar is absent in the remote store"""
    pass


class DivisionNotFoundError(NotFoundError):
    def __init__(self, division_name: str):
        self.division_name = division_name
        super().__init__(f'Division "{division_name}" not found')


class CalendarNotFoundError(NotFoundError):
    def __init__(self, calendar_id: str):
        self.calendar_id = calendar_id
        super().__init__(f'Calendar "{calendar_id}" not found')


class RemoteFailureError(CalendarAdminError):
    """Raised when the remote store call fails"""
    pass


class RemoteTimeoutError(RemoteFailureError):
    """Raised when the remote store does not answer in time"""
    pass


class ValidationFailure(CalendarAdminError):
    """Raised when mutation input is malformed"""

    def __init__(self, errors: List[str], operation: Optional[str] = None):
        self.errors = list(errors)
        self.operation = operation
        prefix = f"Invalid {operation} request: " if operation else ""
        super().__init__(prefix + "; ".join(self.errors))
