"""
Calendar Admin Coordinator
===========================
The single per-session object the console talks to.

Owns the fetch registry, allotment cache and readiness tracker, so several
coordinators can live side by side (one per browser session, or per test).
Read-style calls report failures through `error`; update calls also raise.
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from .allotment_cache import AllotmentCache
from .allotment_loader import AllotmentLoader
from .calendar_data import CalendarAdminData
from .fetch_registry import FetchRegistry
from .models import AllotmentKind, Calendar, Division, RangeOverrideResult, ScopeState, YearlyAllotment
from .mutations import MutationCoordinator
from .readiness import ReadinessTracker
from .remote_store import RemoteStore
from .scope_resolver import ScopeResolver
from .state import CalendarAdminState, DisplayedAllotments
from .validators import CalendarAdminValidator

logger = logging.getLogger(__name__)


class CalendarAdminCoordinator:
    """Scope synchronization and allotment cache for one console session"""

    def __init__(
        self,
        store: RemoteStore,
        user_id_provider: Optional[Callable[[], Optional[str]]] = None,
        today: Optional[Callable[[], date]] = None,
        clock: Optional[Callable[[], datetime]] = None,
        years_ahead: Optional[int] = None,
        registry: Optional[FetchRegistry] = None,
        cache: Optional[AllotmentCache] = None,
        tracker: Optional[ReadinessTracker] = None,
        validator: Optional[CalendarAdminValidator] = None
    ):
        self.state = CalendarAdminState()
        self.data = CalendarAdminData(store)
        self.registry = registry if registry is not None else FetchRegistry()
        self.cache = cache if cache is not None else AllotmentCache()
        self.tracker = tracker if tracker is not None else ReadinessTracker()

        self.loader = AllotmentLoader(self.data, self.state, self.cache, self.registry)
        self.resolver = ScopeResolver(
            self.data, self.state, self.cache, self.registry, self.tracker, self.loader,
            today=today, years_ahead=years_ahead,
        )
        self.mutations = MutationCoordinator(
            self.data, self.state, self.cache, self.loader, self.resolver,
            validator=validator, user_id_provider=user_id_provider, clock=clock,
        )

    # ================================================================
    # READ-ONLY VIEW
    # ================================================================

    @property
    def error(self) -> Optional[str]:
        return self.state.error

    @property
    def active_division(self) -> Optional[str]:
        return self.state.active_division

    @property
    def selected_calendar_id(self) -> Optional[str]:
        return self.state.selected_calendar_id

    def is_ready(self, division: str) -> bool:
        return self.tracker.is_ready(division)

    def get_scope_state(self, division: str) -> ScopeState:
        return self.resolver.get_scope_state(division)

    def get_displayed_allotments(self) -> DisplayedAllotments:
        return self.state.display

    def get_calendars(self, division: str) -> List[Calendar]:
        return list(self.state.calendars.get(division, []))

    def target_years(self) -> List[int]:
        return self.resolver.target_years()

    async def list_divisions(self) -> List[Division]:
        """Division picker options; failures are reported through `error`"""
        try:
            return await self.data.get_divisions()
        except Exception as e:
            logger.error(f"Error listing divisions: {e}")
            self.state.error = f"Failed to load divisions: {e}"
            return []

    # ================================================================
    # SELECTION
    # ================================================================

    async def select_division(self, division: str) -> None:
        await self.resolver.prepare_division_switch(self.state.active_division, division)

    async def select_calendar(self, calendar_id: Optional[str]) -> None:
        await self.resolver.set_selected_calendar(calendar_id)

    async def prepare_division_switch(self, from_division: Optional[str], to_division: str) -> None:
        await self.resolver.prepare_division_switch(from_division, to_division)

    async def ensure_division_loaded(self, division: str) -> bool:
        return await self.resolver.ensure_division_loaded(division)

    def validate_division_state(self, division: str) -> bool:
        return self.resolver.validate_division_state(division)

    def cleanup_division_state(self, division: str) -> None:
        self.resolver.cleanup_division_state(division)

    def set_selected_type(self, kind: AllotmentKind) -> None:
        self.state.selected_type = AllotmentKind(kind)

    async def fetch_allotments(self, calendar_id: str, year: int) -> bool:
        return await self.loader.fetch_allotments(calendar_id, year)

    async def fetch_vacation_allotment_weeks(self, calendar_id: str, year: int) -> List[date]:
        return await self.loader.fetch_vacation_allotment_weeks(calendar_id, year)

    # ================================================================
    # EDIT BUFFERS
    # ================================================================

    def set_pld_sdv_edit_value(self, year: int, value: str) -> None:
        self._set_edit_value(AllotmentKind.PLD_SDV, year, value)

    def set_vacation_edit_value(self, year: int, value: str) -> None:
        self._set_edit_value(AllotmentKind.VACATION, year, value)

    def _set_edit_value(self, kind: AllotmentKind, year: int, value: str) -> None:
        display = self.state.display
        if kind == AllotmentKind.PLD_SDV:
            display.pld_sdv_edit_buffer = {**display.pld_sdv_edit_buffer, year: value}
        else:
            display.vacation_edit_buffer = {**display.vacation_edit_buffer, year: value}
        if display.calendar_id and display.calendar_id in self.cache:
            self.cache.set_edit_value(display.calendar_id, kind, year, value)

    def reset_allotments(self, calendar_id: Optional[str] = None) -> None:
        """Clear the display and drop the cache entry of the given or selected calendar"""
        selected = self.state.selected_calendar_id
        target = calendar_id or selected
        if target:
            self.cache.invalidate(target)
        if target == selected:
            self.state.clear_display(selected)
            if selected and self.state.active_division:
                self.tracker.mark_not_ready(self.state.active_division)
        logger.info(f"Reset allotments (cache entry: {target or 'none'})")

    # ================================================================
    # UPDATES
    # ================================================================

    async def update_yearly(self, calendar_id: str, year: int, max_allotment: int,
                            user_id: Optional[str] = None, reason: Optional[str] = None) -> YearlyAllotment:
        return await self.mutations.update_yearly_allotment(calendar_id, year, max_allotment, user_id, reason)

    async def update_weekly(self, calendar_id: str, year: int, max_allotment: int,
                            user_id: Optional[str] = None, reason: Optional[str] = None) -> int:
        return await self.mutations.update_weekly_allotment_for_year(
            calendar_id, year, max_allotment, user_id, reason
        )

    async def update_week(self, calendar_id: str, week_start_date: date, max_allotment: int,
                          user_id: Optional[str] = None, reason: Optional[str] = None) -> None:
        await self.mutations.update_vacation_week(calendar_id, week_start_date, max_allotment, user_id, reason)

    async def update_allotment(self, calendar_id: str, year: int, max_allotment: int,
                               user_id: Optional[str] = None, reason: Optional[str] = None) -> None:
        await self.mutations.update_allotment(calendar_id, year, max_allotment, user_id, reason)

    async def update_range(self, kind: AllotmentKind, calendar_id: str, start_date: date, end_date: date,
                           max_allotment: int, user_id: Optional[str] = None,
                           reason: Optional[str] = None) -> Optional[RangeOverrideResult]:
        return await self.mutations.update_range_override(
            kind, calendar_id, start_date, end_date, max_allotment, user_id, reason
        )

    async def create_calendar(self, division_id: int, name: str, description: Optional[str] = None) -> Calendar:
        return await self.mutations.create_calendar(division_id, name, description)

    async def update_calendar(self, calendar_id: str, **updates) -> Calendar:
        return await self.mutations.update_calendar(calendar_id, **updates)
