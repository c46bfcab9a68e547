"""
Allotment Read Path
====================
Fetches yearly (PLD/SDV) and weekly (vacation) allotments for a calendar.

- Each sub-fetch is deduplicated by (calendar, year, kind)
- Results always land in the cache; they reach the display only if the
  calendar is still the selection when the fetch resumes
- Failures are absorbed: the shared error is set and False is returned
"""

import asyncio
import logging
from datetime import date
from typing import List

from .allotment_cache import AllotmentCache
from .calendar_data import CalendarAdminData
from .fetch_registry import FetchRegistry, allotment_key
from .models import AllotmentKind, WeeklyVacationAllotment, YearlyAllotment
from .state import CalendarAdminState

logger = logging.getLogger(__name__)

VACATION_WEEKS = "vacation_weeks"


class AllotmentLoader:
    """Loads allotments into the cache and the live display"""

    def __init__(
        self,
        data: CalendarAdminData,
        state: CalendarAdminState,
        cache: AllotmentCache,
        registry: FetchRegistry
    ):
        self.data = data
        self.state = state
        self.cache = cache
        self.registry = registry

    async def fetch_allotments(self, calendar_id: str, year: int) -> bool:
        """Both allotment kinds for one year, each joined onto any in-flight fetch"""
        if not calendar_id:
            logger.warning("fetch_allotments called without calendar_id")
            return False

        results = await asyncio.gather(
            self.registry.run(
                allotment_key(calendar_id, year, AllotmentKind.PLD_SDV),
                lambda: self.fetch_pld_sdv_allotments(calendar_id, year),
            ),
            self.registry.run(
                allotment_key(calendar_id, year, AllotmentKind.VACATION),
                lambda: self.fetch_vacation_allotments(calendar_id, year),
            ),
        )
        ok = all(results)
        logger.debug(f"Allotment fetch for calendar {calendar_id}, {year} finished (ok={ok})")
        return ok

    async def fetch_pld_sdv_allotments(self, calendar_id: str, year: int) -> bool:
        """Read the single yearly row; a missing row becomes a zero-quota record"""
        if not calendar_id:
            logger.warning("fetch_pld_sdv_allotments called without calendar_id")
            return False

        try:
            allotment = await self.data.get_yearly_allotment(calendar_id, year)
        except Exception as e:
            logger.error(f"Error fetching PLD/SDV allotment for calendar {calendar_id}, {year}: {e}")
            self.state.error = f"Failed to load PLD/SDV allotment for calendar {calendar_id} ({year}): {e}"
            return False

        if allotment is None:
            allotment = YearlyAllotment.empty(calendar_id, year)

        self.cache.put_yearly(calendar_id, allotment)
        if self.state.selected_calendar_id == calendar_id:
            self._show_yearly(calendar_id, allotment)
        else:
            logger.debug(f"Calendar {calendar_id} no longer selected; PLD/SDV {year} cached only")
        return True

    async def fetch_vacation_allotments(self, calendar_id: str, year: int) -> bool:
        if not calendar_id:
            logger.warning("fetch_vacation_allotments called without calendar_id")
            return False

        try:
            weeks = await self.data.get_weekly_allotments(calendar_id, year)
        except Exception as e:
            logger.error(f"Error fetching vacation allotments for calendar {calendar_id}, {year}: {e}")
            self.state.error = f"Failed to load vacation allotments for calendar {calendar_id} ({year}): {e}"
            return False

        self.cache.put_weekly(calendar_id, year, weeks)
        if self.state.selected_calendar_id == calendar_id:
            self._show_weekly(calendar_id, year, weeks)
        else:
            logger.debug(f"Calendar {calendar_id} no longer selected; vacation {year} cached only")
        return True

    async def fetch_vacation_allotment_weeks(self, calendar_id: str, year: int) -> List[date]:
        """Stored week starts of a vacation year, for the request entry form"""
        if not calendar_id or not year:
            logger.warning("Missing calendar_id or year for fetching vacation weeks")
            return []

        return await self.registry.run(
            allotment_key(calendar_id, year, VACATION_WEEKS),
            lambda: self._load_vacation_weeks(calendar_id, year),
        )

    async def _load_vacation_weeks(self, calendar_id: str, year: int) -> List[date]:
        self.state.is_loading_vacation_weeks = True
        try:
            weeks = await self.data.get_vacation_week_starts(calendar_id, year)
        except Exception as e:
            logger.error(f"Error fetching vacation weeks for calendar {calendar_id}, {year}: {e}")
            self.state.error = f"Failed to load vacation weeks for calendar {calendar_id} ({year}): {e}"
            return self.state.vacation_allotment_weeks.get(calendar_id, {}).get(year, [])
        finally:
            self.state.is_loading_vacation_weeks = False

        by_year = self.state.vacation_allotment_weeks.setdefault(calendar_id, {})
        by_year[year] = weeks
        return weeks

    # ================================================================
    # DISPLAY
    # ================================================================

    def _claim_display(self, calendar_id: str):
        display = self.state.display
        if display.calendar_id != calendar_id:
            self.state.clear_display(calendar_id)
        return self.state.display

    def _show_yearly(self, calendar_id: str, allotment: YearlyAllotment) -> None:
        display = self._claim_display(calendar_id)
        display.yearly_allotments = sorted(
            [a for a in display.yearly_allotments if a.year != allotment.year] + [allotment],
            key=lambda a: a.year,
        )
        display.pld_sdv_edit_buffer = {
            **display.pld_sdv_edit_buffer, allotment.year: str(allotment.max_allotment)
        }

    def _show_weekly(self, calendar_id: str, year: int, weeks: List[WeeklyVacationAllotment]) -> None:
        display = self._claim_display(calendar_id)
        display.weekly_allotments = sorted(
            [w for w in display.weekly_allotments if w.vac_year != year] + list(weeks),
            key=lambda w: w.week_start_date,
        )
        display.vacation_edit_buffer = {
            **display.vacation_edit_buffer, year: str(weeks[0].max_allotment) if weeks else "0"
        }
