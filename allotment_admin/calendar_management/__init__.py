"""
Calendar Management Module
===========================
Leave allotment administration per division and calendar.

Features:
- Division settings load (calendars, legacy zones) with auto-selection
- PLD/SDV yearly and vacation weekly allotments, cached per calendar
- Readiness gate per division
- Yearly, weekly, single-week and date-range overrides
- Calendar create / rename / deactivate

The console talks to one CalendarAdminCoordinator per session.
"""

from .coordinator import CalendarAdminCoordinator
from .calendar_data import CalendarAdminData
from .errors import (
    CalendarAdminError,
    CalendarNotFoundError,
    DivisionNotFoundError,
    NotFoundError,
    RemoteFailureError,
    RemoteTimeoutError,
    ValidationFailure,
)
from .formatters import CalendarAdminFormatters
from .models import (
    AllotmentKind,
    Calendar,
    Division,
    RangeOverrideResult,
    ScopeState,
    WeeklyVacationAllotment,
    YearlyAllotment,
    Zone,
)
from .remote_store import RemoteStore
from .sql_store import SqlRemoteStore
from .validators import CalendarAdminValidator, ValidationResult

__all__ = [
    'CalendarAdminCoordinator',
    'CalendarAdminData',
    'CalendarAdminFormatters',
    'CalendarAdminValidator',
    'ValidationResult',
    'RemoteStore',
    'SqlRemoteStore',
    'AllotmentKind',
    'ScopeState',
    'Division',
    'Calendar',
    'Zone',
    'YearlyAllotment',
    'WeeklyVacationAllotment',
    'RangeOverrideResult',
    'CalendarAdminError',
    'NotFoundError',
    'DivisionNotFoundError',
    'CalendarNotFoundError',
    'RemoteFailureError',
    'RemoteTimeoutError',
    'ValidationFailure',
]

__version__ = '1.0.0'
