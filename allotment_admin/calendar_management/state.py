"""
Live state shared by the resolver, loader and mutation coordinator.

The displayed allotments always carry the calendar id they were loaded
for; they are written only while that calendar is still the selection.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Set

from .models import (
    AllotmentKind,
    CacheEntry,
    Calendar,
    Division,
    ScopeState,
    WeeklyVacationAllotment,
    YearlyAllotment,
    Zone,
)


@dataclass
class DisplayedAllotments:
    calendar_id: Optional[str] = None
    yearly_allotments: List[YearlyAllotment] = field(default_factory=list)
    weekly_allotments: List[WeeklyVacationAllotment] = field(default_factory=list)
    pld_sdv_edit_buffer: Dict[int, str] = field(default_factory=dict)
    vacation_edit_buffer: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_cache(cls, calendar_id: str, entry: CacheEntry) -> 'DisplayedAllotments':
        return cls(
            calendar_id=calendar_id,
            yearly_allotments=list(entry.yearly_allotments),
            weekly_allotments=list(entry.weekly_allotments),
            pld_sdv_edit_buffer=dict(entry.pld_sdv_edit_buffer),
            vacation_edit_buffer=dict(entry.vacation_edit_buffer),
        )

    def yearly_for(self, year: int) -> Optional[YearlyAllotment]:
        return next((a for a in self.yearly_allotments if a.year == year), None)

    def weeks_for(self, year: int) -> List[WeeklyVacationAllotment]:
        return [w for w in self.weekly_allotments if w.vac_year == year]


@dataclass
class CalendarAdminState:
    # Scope model shadows, keyed by division name
    divisions: Dict[str, Division] = field(default_factory=dict)
    calendars: Dict[str, List[Calendar]] = field(default_factory=dict)
    division_zones: Dict[str, List[Zone]] = field(default_factory=dict)
    loaded_divisions: Set[str] = field(default_factory=set)
    scope_states: Dict[str, ScopeState] = field(default_factory=dict)
    last_selected_calendar: Dict[str, str] = field(default_factory=dict)

    # Current selection
    active_division: Optional[str] = None
    selected_calendar_id: Optional[str] = None
    selected_type: AllotmentKind = AllotmentKind.PLD_SDV
    display: DisplayedAllotments = field(default_factory=DisplayedAllotments)

    # Request-entry helper: calendar -> year -> week starts
    vacation_allotment_weeks: Dict[str, Dict[int, List[date]]] = field(default_factory=dict)

    # Loading flags
    is_loading: bool = False
    is_division_loading: bool = False
    is_calendars_loading: bool = False
    is_allotments_loading: bool = False
    is_loading_vacation_weeks: bool = False
    is_switching_division: bool = False

    error: Optional[str] = None

    def clear_display(self, calendar_id: Optional[str] = None) -> None:
        self.display = DisplayedAllotments(calendar_id=calendar_id)

    def find_calendar(self, calendar_id: str) -> Optional[Calendar]:
        for calendars in self.calendars.values():
            for calendar in calendars:
                if calendar.id == calendar_id:
                    return calendar
        return None

    def division_name_for_id(self, division_id: int) -> Optional[str]:
        for name, division in self.divisions.items():
            if division.id == division_id:
                return name
        return None
