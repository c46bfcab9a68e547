"""
Scope Resolver
===============
Division settings loading, calendar auto-selection and readiness.

Per division:
    UNLOADED -> SETTINGS_LOADING -> SETTINGS_LOADED -> ALLOTMENTS_LOADING -> READY
    any non-terminal state -> ERROR

After every await the resolver compares the scope it was working for
(active division, selected calendar) with the current one and leaves the
live display alone when they differ. The cache is always written.

Public entry points never raise; failures are reported through
`state.error`.
"""

import asyncio
import logging
from datetime import date
from typing import Callable, List, Optional

from ..config import config
from .allotment_cache import AllotmentCache
from .allotment_loader import AllotmentLoader
from .calendar_data import CalendarAdminData
from .fetch_registry import FetchRegistry, division_key
from .models import Calendar, DivisionSettings, ScopeState
from .readiness import ReadinessTracker
from .state import CalendarAdminState, DisplayedAllotments

logger = logging.getLogger(__name__)


def pick_calendar(calendars: List[Calendar], previous_id: Optional[str] = None) -> Optional[str]:
    """
    Calendar to select after a division's calendars are known.

    Keeps `previous_id` if it is still listed and active, otherwise takes
    the first active calendar by name, then the first calendar by name,
    then None.
    """
    ordered = sorted(calendars, key=lambda c: c.name)
    if previous_id and any(c.id == previous_id and c.is_active for c in ordered):
        return previous_id
    first_active = next((c for c in ordered if c.is_active), None)
    if first_active is not None:
        return first_active.id
    return ordered[0].id if ordered else None


class ScopeResolver:
    """Drives division/calendar selection and the readiness flags"""

    def __init__(
        self,
        data: CalendarAdminData,
        state: CalendarAdminState,
        cache: AllotmentCache,
        registry: FetchRegistry,
        tracker: ReadinessTracker,
        loader: AllotmentLoader,
        today: Optional[Callable[[], date]] = None,
        years_ahead: Optional[int] = None
    ):
        self.data = data
        self.state = state
        self.cache = cache
        self.registry = registry
        self.tracker = tracker
        self.loader = loader
        self.today = today or date.today
        self.years_ahead = (years_ahead if years_ahead is not None
                            else config.get_app_setting('ALLOTMENT_YEARS_AHEAD', 1))

    def target_years(self) -> List[int]:
        current = self.today().year
        return [current + offset for offset in range(self.years_ahead + 1)]

    def get_scope_state(self, division: str) -> ScopeState:
        return self.state.scope_states.get(division, ScopeState.UNLOADED)

    def validate_division_state(self, division: str) -> bool:
        if division not in self.state.loaded_divisions:
            logger.debug(f"Division settings not loaded: {division}")
            return False
        if division not in self.state.calendars:
            logger.debug(f"Calendars not loaded for division: {division}")
            return False
        return True

    # ================================================================
    # DIVISION SETTINGS
    # ================================================================

    async def fetch_division_settings(self, division: str) -> DivisionSettings:
        """Division row, then its calendars and legacy zones in parallel"""
        division_row = await self.data.get_division_by_name(division)
        calendars, zones = await asyncio.gather(
            self.data.get_division_calendars(division_row.id),
            self.data.get_division_zones(division_row.id),
        )
        return DivisionSettings(division=division_row, calendars=calendars, zones=zones)

    async def _load_division_settings(self, division: str) -> bool:
        # A reload keeps the division's scope state and readiness unless it succeeds
        first_load = division not in self.state.loaded_divisions
        if first_load:
            self.state.scope_states[division] = ScopeState.SETTINGS_LOADING
            self.tracker.mark_not_ready(division)
        self.state.is_division_loading = True
        self.state.is_calendars_loading = True
        self.state.error = None

        try:
            settings = await self.fetch_division_settings(division)
        except Exception as e:
            logger.error(f"Error fetching division settings for {division}: {e}")
            self.state.error = f"Failed to load settings for division {division}: {e}"
            if first_load:
                self.state.scope_states[division] = ScopeState.ERROR
            return False
        finally:
            self.state.is_division_loading = False
            self.state.is_calendars_loading = False

        self.state.divisions[division] = settings.division
        self.state.calendars[division] = settings.calendars
        self.state.division_zones[division] = settings.zones
        self.state.loaded_divisions.add(division)
        if first_load:
            self.state.scope_states[division] = ScopeState.SETTINGS_LOADED

        logger.info(
            f"Loaded settings for division {division}: "
            f"{len(settings.calendars)} calendars, {len(settings.zones)} zones"
        )
        return True

    async def ensure_division_loaded(self, division: str) -> bool:
        """
        Make sure the division's calendars are known and a calendar is resolved.

        Already-loaded divisions are not refetched. Concurrent callers for the
        same division share one settings load.
        """
        if not division:
            logger.warning("ensure_division_loaded called without a division name")
            return False

        if self.validate_division_state(division):
            logger.debug(f"Division {division} already loaded")
            if self.state.active_division == division:
                await self._resolve_selection(division)
            return True

        ok = await self.registry.run(
            division_key(division), lambda: self._load_division_settings(division)
        )
        if not ok:
            return False

        if self.state.active_division == division:
            await self._resolve_selection(division)
        else:
            logger.info(f"Division {division} loaded after the selection moved on; selection left as is")
        return self.validate_division_state(division)

    async def reload_division_settings(self, division: str) -> bool:
        """
        Refetch settings even when loaded, then re-resolve the selection if active.

        Used after calendar writes, so it never joins a settings read that
        may have started before the write.
        """
        ok = await self._load_division_settings(division)
        if ok and self.state.active_division == division:
            await self._resolve_selection(division)
        return ok

    async def _resolve_selection(self, division: str) -> None:
        calendars = self.state.calendars.get(division, [])
        current = self.state.selected_calendar_id

        if current is not None and any(c.id == current for c in calendars):
            previous = current
        else:
            previous = self.state.last_selected_calendar.get(division)

        chosen = pick_calendar(calendars, previous)
        if chosen == current:
            await self.revalidate_readiness(division)
        else:
            logger.info(f"Selecting calendar {chosen} for division {division}")
            await self.set_selected_calendar(chosen, division=division)

    # ================================================================
    # CALENDAR SELECTION
    # ================================================================

    async def set_selected_calendar(self, calendar_id: Optional[str], division: Optional[str] = None) -> None:
        """
        Switch the displayed calendar.

        The display is cleared and the division marked not ready before the
        first await; readiness comes back once the target years are in the
        cache (immediately on a cache hit).
        """
        division = division if division is not None else self.state.active_division
        if calendar_id == self.state.selected_calendar_id:
            return

        known = self.state.calendars.get(division) if division else None
        if calendar_id and known is not None and not any(c.id == calendar_id for c in known):
            logger.warning(f"Calendar {calendar_id} is not listed for division {division}")

        self.state.selected_calendar_id = calendar_id
        self.state.clear_display(calendar_id)
        if division:
            self.tracker.mark_not_ready(division)
            if calendar_id:
                self.state.last_selected_calendar[division] = calendar_id

        await self._load_selected_calendar(division, calendar_id)

    async def revalidate_readiness(self, division: str) -> bool:
        if self.tracker.is_ready(division):
            return True
        if division != self.state.active_division:
            return False
        return await self._load_selected_calendar(division, self.state.selected_calendar_id)

    async def _load_selected_calendar(self, division: Optional[str], calendar_id: Optional[str]) -> bool:
        if calendar_id is None:
            # Nothing selected means nothing to wait for
            self._mark_ready(division)
            return True

        years = self.target_years()
        missing = self.cache.missing_years(calendar_id, years)
        if not missing:
            logger.debug(f"Using cached allotments for calendar {calendar_id}")
            self.state.display = DisplayedAllotments.from_cache(calendar_id, self.cache.get(calendar_id))
            self._mark_ready(division)
            return True

        if division:
            self.state.scope_states[division] = ScopeState.ALLOTMENTS_LOADING
        self.state.is_allotments_loading = True
        ok = True
        try:
            for year in missing:
                ok = await self.loader.fetch_allotments(calendar_id, year) and ok
        finally:
            self.state.is_allotments_loading = False

        if not self._is_current(division, calendar_id):
            logger.warning(
                f"Selection moved on while loading calendar {calendar_id}; results kept in cache only"
            )
            return ok

        if ok and not self.cache.missing_years(calendar_id, years):
            self.state.display = DisplayedAllotments.from_cache(calendar_id, self.cache.get(calendar_id))
            self._mark_ready(division)
            logger.info(f"Division {division} ready with calendar {calendar_id}")
            return True

        if not self.state.error:
            self.state.error = f"Failed to load allotments for calendar {calendar_id}"
        if division:
            self.state.scope_states[division] = ScopeState.ERROR
        return False

    def _is_current(self, division: Optional[str], calendar_id: Optional[str]) -> bool:
        if self.state.selected_calendar_id != calendar_id:
            return False
        return division is None or self.state.active_division == division

    def _mark_ready(self, division: Optional[str]) -> None:
        if division:
            self.tracker.mark_ready(division)
            self.state.scope_states[division] = ScopeState.READY

    # ================================================================
    # DIVISION SWITCHING
    # ================================================================

    async def prepare_division_switch(self, from_division: Optional[str], to_division: str) -> None:
        """
        Move the console to another division.

        A failed switch leaves the target not ready with no calendar selected;
        the division being left keeps its cache and readiness.
        """
        if from_division == to_division:
            if to_division in self.state.loaded_divisions and not self.tracker.is_ready(to_division):
                logger.info(f"Re-selecting {to_division}, ensuring readiness")
                await self.revalidate_readiness(to_division)
            return

        logger.info(f"Division switch: {from_division} -> {to_division}")
        self.state.is_switching_division = True
        self.state.error = None
        self.tracker.mark_not_ready(to_division)
        self.state.active_division = to_division
        self.state.selected_calendar_id = None
        self.state.clear_display()

        try:
            ok = await self.ensure_division_loaded(to_division)

            if self.state.active_division != to_division:
                logger.warning(f"Switch to {to_division} superseded by {self.state.active_division}")
                return

            if not ok:
                self._fail_switch(
                    to_division, self.state.error or f"Failed to load division {to_division} settings"
                )
                return

            if (not self.tracker.is_ready(to_division)
                    and self.get_scope_state(to_division) != ScopeState.ERROR):
                await self.revalidate_readiness(to_division)
        finally:
            if self.state.active_division == to_division:
                self.state.is_switching_division = False

    def _fail_switch(self, division: str, message: str) -> None:
        logger.error(f"Division switch to {division} failed: {message}")
        self.state.error = message
        self.state.selected_calendar_id = None
        self.state.clear_display()
        self.state.is_division_loading = False
        self.state.is_calendars_loading = False
        self.state.scope_states[division] = ScopeState.ERROR
        self.tracker.mark_not_ready(division)

    def cleanup_division_state(self, division: str) -> None:
        """Unload a division entirely, including the cache of its calendars"""
        calendar_ids = [c.id for c in self.state.calendars.get(division, [])]
        evicted = self.cache.invalidate_many(calendar_ids)

        self.state.divisions.pop(division, None)
        self.state.calendars.pop(division, None)
        self.state.division_zones.pop(division, None)
        self.state.loaded_divisions.discard(division)
        self.state.scope_states.pop(division, None)
        self.state.last_selected_calendar.pop(division, None)
        for calendar_id in calendar_ids:
            self.state.vacation_allotment_weeks.pop(calendar_id, None)
        self.tracker.forget(division)

        if self.state.active_division == division:
            self.state.clear_display()
            self.state.selected_calendar_id = None
            self.state.active_division = None

        logger.info(f"Division state cleanup complete for {division} ({evicted} cache entries evicted)")
