"""
Calendar Management Validators
===============================
Input checks run before any quota override or calendar write reaches the
remote store.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from ..config import config
from .models import AllotmentKind

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of validation check"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        self.warnings.append(message)

    def merge(self, other: 'ValidationResult'):
        """Merge another validation result into this one"""
        if not other.is_valid:
            self.is_valid = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


class CalendarAdminValidator:
    """Validator for allotment overrides and calendar edits"""

    def __init__(self):
        self.MIN_YEAR = config.get_app_setting('MIN_ALLOTMENT_YEAR', 2000)
        self.MAX_YEAR = config.get_app_setting('MAX_ALLOTMENT_YEAR', 2100)
        self.MAX_ALLOTMENT = config.get_app_setting('MAX_ALLOTMENT_VALUE', 1000)
        self.MAX_NAME_LENGTH = 100
        self.MAX_REASON_LENGTH = 500

    # ================================================================
    # SHARED RULES
    # ================================================================

    def validate_identity(self, calendar_id: Optional[str], user_id: Optional[str]) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if not calendar_id:
            result.add_error("Calendar ID is required")
        if not user_id:
            result.add_error("User ID is required")
        return result

    def validate_year(self, year: Any) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if not isinstance(year, int) or isinstance(year, bool):
            result.add_error(f"Year must be an integer, got {year!r}")
        elif not self.MIN_YEAR <= year <= self.MAX_YEAR:
            result.add_error(f"Year {year} is outside {self.MIN_YEAR}-{self.MAX_YEAR}")
        return result

    def validate_max_allotment(self, max_allotment: Any) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if not isinstance(max_allotment, int) or isinstance(max_allotment, bool):
            result.add_error(f"Allotment must be a whole number, got {max_allotment!r}")
        elif max_allotment < 0:
            result.add_error("Allotment cannot be negative")
        elif max_allotment > self.MAX_ALLOTMENT:
            result.add_error(f"Allotment cannot exceed {self.MAX_ALLOTMENT}")
        elif max_allotment == 0:
            result.add_warning("Allotment of 0 blocks all requests for this period")
        return result

    def validate_reason(self, reason: Optional[str]) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        if reason and len(reason) > self.MAX_REASON_LENGTH:
            result.add_error(f"Reason cannot exceed {self.MAX_REASON_LENGTH} characters")
        return result

    # ================================================================
    # OVERRIDES
    # ================================================================

    def validate_yearly_update(
        self,
        calendar_id: Optional[str],
        year: Any,
        max_allotment: Any,
        user_id: Optional[str],
        reason: Optional[str] = None
    ) -> ValidationResult:
        result = self.validate_identity(calendar_id, user_id)
        result.merge(self.validate_year(year))
        result.merge(self.validate_max_allotment(max_allotment))
        result.merge(self.validate_reason(reason))
        return result

    def validate_week_update(
        self,
        calendar_id: Optional[str],
        week_start_date: Any,
        max_allotment: Any,
        user_id: Optional[str],
        reason: Optional[str] = None
    ) -> ValidationResult:
        result = self.validate_identity(calendar_id, user_id)
        if not isinstance(week_start_date, date):
            result.add_error(f"Week start must be a date, got {week_start_date!r}")
        else:
            if week_start_date.weekday() != 0:
                result.add_error(f"Week start {week_start_date.isoformat()} is not a Monday")
            result.merge(self.validate_year(week_start_date.year))
        result.merge(self.validate_max_allotment(max_allotment))
        result.merge(self.validate_reason(reason))
        return result

    def validate_range_override(
        self,
        kind: Any,
        calendar_id: Optional[str],
        start_date: Any,
        end_date: Any,
        max_allotment: Any,
        user_id: Optional[str],
        reason: Optional[str] = None
    ) -> ValidationResult:
        result = self.validate_identity(calendar_id, user_id)

        try:
            AllotmentKind(kind)
        except ValueError:
            result.add_error(f"Unknown allotment type {kind!r}")

        if not isinstance(start_date, date) or not isinstance(end_date, date):
            result.add_error("Start date and end date are required")
        else:
            if end_date < start_date:
                result.add_error("End date cannot be before start date")
            result.merge(self.validate_year(start_date.year))
            result.merge(self.validate_year(end_date.year))
            if (end_date - start_date).days > 366:
                result.add_warning("Range spans more than a year; every touched year will be reloaded")

        result.merge(self.validate_max_allotment(max_allotment))
        result.merge(self.validate_reason(reason))
        return result

    # ================================================================
    # CALENDARS
    # ================================================================

    def validate_calendar_fields(self, updates: Dict[str, Any], require_name: bool = False) -> ValidationResult:
        result = ValidationResult(is_valid=True)
        allowed = {'name', 'description', 'is_active'}

        unknown = set(updates) - allowed
        if unknown:
            result.add_error(f"Unsupported calendar fields: {', '.join(sorted(unknown))}")

        if require_name or 'name' in updates:
            name = (updates.get('name') or '').strip()
            if not name:
                result.add_error("Calendar name is required")
            elif len(name) > self.MAX_NAME_LENGTH:
                result.add_error(f"Calendar name cannot exceed {self.MAX_NAME_LENGTH} characters")

        if 'is_active' in updates and not isinstance(updates['is_active'], bool):
            result.add_error("is_active must be true or false")
        if updates.get('is_active') is False:
            result.add_warning("Deactivated calendars stay visible but are not auto-selected")

        if not updates and not require_name:
            result.add_error("No calendar changes supplied")
        return result
