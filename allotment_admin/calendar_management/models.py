"""
Calendar Management Scope Model
================================
Plain data for the Division -> Calendar -> Allotment hierarchy.

A division owns zero or more calendars. Allotments belong to a calendar:
- one yearly PLD/SDV record per (calendar, year)
- one weekly vacation record per (calendar, Monday week start)
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple


class AllotmentKind(str, Enum):
    """Which quota an allotment row describes"""
    PLD_SDV = "pld_sdv"
    VACATION = "vacation"


class ScopeState(str, Enum):
    """Load state of a single division"""
    UNLOADED = "unloaded"
    SETTINGS_LOADING = "settings_loading"
    SETTINGS_LOADED = "settings_loaded"
    ALLOTMENTS_LOADING = "allotments_loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class Division:
    id: int
    name: str


@dataclass(frozen=True)
class Calendar:
    """Allotment scope inside a division (successor of the legacy zone)"""
    id: str
    division_id: int
    name: str
    is_active: bool = True
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Zone:
    """Legacy division sub-scope, kept only as a read-only shadow"""
    id: int
    division_id: int
    name: str


@dataclass
class YearlyAllotment:
    """PLD/SDV quota for one calendar year"""
    year: int
    max_allotment: int = 0
    calendar_id: Optional[str] = None
    is_override: Optional[bool] = None
    override_by: Optional[str] = None
    override_at: Optional[datetime] = None
    override_reason: Optional[str] = None

    @classmethod
    def empty(cls, calendar_id: str, year: int) -> 'YearlyAllotment':
        """Zero-quota, non-override record standing in for a missing row"""
        return cls(year=year, max_allotment=0, calendar_id=calendar_id)


@dataclass
class WeeklyVacationAllotment:
    """Vacation quota for one Monday-aligned week"""
    week_start_date: date
    vac_year: int
    max_allotment: int = 0
    calendar_id: Optional[str] = None
    id: Optional[int] = None
    current_requests: Optional[int] = None
    is_override: bool = False
    override_by: Optional[str] = None
    override_at: Optional[datetime] = None
    override_reason: Optional[str] = None


@dataclass
class CacheEntry:
    """Last-known allotments of one calendar plus the UI edit buffers"""
    yearly_allotments: List[YearlyAllotment] = field(default_factory=list)
    weekly_allotments: List[WeeklyVacationAllotment] = field(default_factory=list)
    pld_sdv_edit_buffer: Dict[int, str] = field(default_factory=dict)
    vacation_edit_buffer: Dict[int, str] = field(default_factory=dict)
    loaded_years: Set[Tuple[AllotmentKind, int]] = field(default_factory=set)

    def has_year(self, year: int) -> bool:
        return ((AllotmentKind.PLD_SDV, year) in self.loaded_years
                and (AllotmentKind.VACATION, year) in self.loaded_years)


@dataclass
class DivisionSettings:
    """Everything fetched for a division in one settings load"""
    division: Division
    calendars: List[Calendar] = field(default_factory=list)
    zones: List[Zone] = field(default_factory=list)


@dataclass
class RangeOverrideResult:
    """Outcome of a server-side date-range bulk override"""
    affected_count: int
    start_date: date
    end_date: date
