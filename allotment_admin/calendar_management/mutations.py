"""
Mutation Coordinator
=====================
Quota overrides and calendar edits, written through the remote store.

Operations:
- Single-year PLD/SDV override (upsert by calendar + year, then re-read)
- Whole-year vacation override (bulk upsert of every Monday, then re-read)
- Single-week vacation override
- Date-range override via server procedure (re-read every touched year)
- Calendar create / update (deactivate instead of delete)

Every write sets `is_loading` for its duration, records a context-qualified
error on failure and re-raises so the initiating action sees the failure.
A write whose re-read fails is reported as a failure too; the cache never
hands back the pre-write record.
Re-reads after a write bypass the fetch registry: joining an older
in-flight read would hand back pre-write data.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from .allotment_cache import AllotmentCache
from .allotment_loader import AllotmentLoader
from .calendar_data import CalendarAdminData, row_to_yearly
from .errors import RemoteFailureError, ValidationFailure
from .models import AllotmentKind, Calendar, RangeOverrideResult, YearlyAllotment
from .scope_resolver import ScopeResolver
from .state import CalendarAdminState
from .validators import CalendarAdminValidator, ValidationResult
from .week_utils import generate_week_starts, years_between

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MutationCoordinator:
    """Applies overrides and reconciles the cache afterwards"""

    def __init__(
        self,
        data: CalendarAdminData,
        state: CalendarAdminState,
        cache: AllotmentCache,
        loader: AllotmentLoader,
        resolver: ScopeResolver,
        validator: Optional[CalendarAdminValidator] = None,
        user_id_provider: Optional[Callable[[], Optional[str]]] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.data = data
        self.state = state
        self.cache = cache
        self.loader = loader
        self.resolver = resolver
        self.validator = validator or CalendarAdminValidator()
        self.user_id_provider = user_id_provider
        self.clock = clock or _utc_now

    # ==================== HELPERS ====================

    def _resolve_user(self, user_id: Optional[str]) -> Optional[str]:
        if user_id:
            return str(user_id)
        if self.user_id_provider is not None:
            provided = self.user_id_provider()
            return str(provided) if provided else None
        return None

    def _require_valid(self, validation: ValidationResult, operation: str) -> None:
        for warning in validation.warnings:
            logger.warning(f"{operation}: {warning}")
        if not validation.is_valid:
            failure = ValidationFailure(validation.errors, operation)
            logger.error(str(failure))
            self.state.error = str(failure)
            raise failure

    def _begin(self) -> None:
        self.state.is_loading = True
        self.state.error = None

    def _fail(self, message: str, error: Exception) -> None:
        logger.error(f"{message}: {error}")
        self.state.error = f"{message}: {error}"

    def _require_reread(self, ok: bool, what: str) -> None:
        if not ok:
            raise RemoteFailureError(f"{what} was saved but could not be re-read: {self.state.error}")

    # ================================================================
    # PLD/SDV
    # ================================================================

    async def update_yearly_allotment(
        self,
        calendar_id: str,
        year: int,
        max_allotment: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> YearlyAllotment:
        """Override one year's PLD/SDV quota and return the re-read record"""
        user_id = self._resolve_user(user_id)
        self._require_valid(
            self.validator.validate_yearly_update(calendar_id, year, max_allotment, user_id, reason),
            "PLD/SDV update",
        )

        self._begin()
        try:
            written = await self.data.upsert_yearly_allotment(
                calendar_id, year, max_allotment, user_id, self.clock(), reason
            )
            self._require_reread(
                await self.loader.fetch_pld_sdv_allotments(calendar_id, year), "PLD/SDV allotment"
            )
            logger.info(
                f"Updated PLD/SDV allotment for calendar {calendar_id}, {year} -> {max_allotment} by {user_id}"
            )
        except Exception as e:
            self._fail(f"Failed to update PLD/SDV allotment for calendar {calendar_id} ({year})", e)
            raise
        finally:
            self.state.is_loading = False

        entry = self.cache.get(calendar_id)
        cached = next((a for a in entry.yearly_allotments if a.year == year), None) if entry else None
        if cached is None and written:
            # Entry evicted while the write was in flight
            return row_to_yearly(written[0], calendar_id, year)
        return cached

    # ================================================================
    # VACATION
    # ================================================================

    async def update_weekly_allotment_for_year(
        self,
        calendar_id: str,
        year: int,
        max_allotment: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> int:
        """Override every Monday-aligned week of the year; returns the week count"""
        user_id = self._resolve_user(user_id)
        self._require_valid(
            self.validator.validate_yearly_update(calendar_id, year, max_allotment, user_id, reason),
            "vacation update",
        )

        week_starts = generate_week_starts(year)
        self._begin()
        try:
            await self.data.upsert_weekly_allotments(
                calendar_id, week_starts, max_allotment, user_id, self.clock(), reason
            )
            self._require_reread(
                await self.loader.fetch_vacation_allotments(calendar_id, year), "Vacation allotment"
            )
            logger.info(
                f"Updated {len(week_starts)} vacation weeks for calendar {calendar_id}, {year} -> {max_allotment}"
            )
        except Exception as e:
            self._fail(f"Failed to update vacation allotment for calendar {calendar_id} ({year})", e)
            raise
        finally:
            self.state.is_loading = False
        return len(week_starts)

    async def update_vacation_week(
        self,
        calendar_id: str,
        week_start_date: date,
        max_allotment: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> None:
        user_id = self._resolve_user(user_id)
        self._require_valid(
            self.validator.validate_week_update(calendar_id, week_start_date, max_allotment, user_id, reason),
            "vacation week update",
        )

        self._begin()
        try:
            await self.data.upsert_weekly_allotments(
                calendar_id, [week_start_date], max_allotment, user_id, self.clock(), reason
            )
            self._require_reread(
                await self.loader.fetch_vacation_allotments(calendar_id, week_start_date.year),
                "Vacation week",
            )
            logger.info(f"Updated vacation week {week_start_date} for calendar {calendar_id} -> {max_allotment}")
        except Exception as e:
            self._fail(
                f"Failed to update vacation week {week_start_date.isoformat()} for calendar {calendar_id}", e
            )
            raise
        finally:
            self.state.is_loading = False

    async def update_allotment(
        self,
        calendar_id: str,
        year: int,
        max_allotment: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> None:
        """Yearly override for whichever allotment type is selected"""
        if self.state.selected_type == AllotmentKind.VACATION:
            await self.update_weekly_allotment_for_year(calendar_id, year, max_allotment, user_id, reason)
        else:
            await self.update_yearly_allotment(calendar_id, year, max_allotment, user_id, reason)

    # ================================================================
    # DATE RANGE
    # ================================================================

    async def update_range_override(
        self,
        kind: AllotmentKind,
        calendar_id: str,
        start_date: date,
        end_date: date,
        max_allotment: int,
        user_id: Optional[str] = None,
        reason: Optional[str] = None
    ) -> Optional[RangeOverrideResult]:
        """
        Bulk override of a date range, done server-side.

        The range may have touched any row inside it, so every year between the
        requested and the effective boundaries is re-read in full; rows are
        never patched locally.
        """
        user_id = self._resolve_user(user_id)
        self._require_valid(
            self.validator.validate_range_override(
                kind, calendar_id, start_date, end_date, max_allotment, user_id, reason
            ),
            "date range update",
        )
        kind = AllotmentKind(kind)
        label = "PLD/SDV" if kind == AllotmentKind.PLD_SDV else "vacation"

        self._begin()
        try:
            result = await self.data.bulk_update_range(
                kind, calendar_id, start_date, end_date, max_allotment, user_id, reason
            )

            bounds = [start_date, end_date]
            if result is not None:
                bounds += [result.start_date, result.end_date]
            years = years_between(min(bounds), max(bounds))

            fetch = (self.loader.fetch_pld_sdv_allotments if kind == AllotmentKind.PLD_SDV
                     else self.loader.fetch_vacation_allotments)
            reread = [await fetch(calendar_id, year) for year in years]
            self._require_reread(all(reread), f"{label} date range")

            if result is None:
                logger.warning(f"{label} range update for calendar {calendar_id} returned no result")
            else:
                logger.info(
                    f"{label} range update for calendar {calendar_id}: {result.affected_count} rows "
                    f"({result.start_date} - {result.end_date}), reloaded years {years}"
                )
            return result
        except Exception as e:
            self._fail(f"Failed to update {label} date range for calendar {calendar_id}", e)
            raise
        finally:
            self.state.is_loading = False

    # ================================================================
    # CALENDARS
    # ================================================================

    async def create_calendar(
        self,
        division_id: int,
        name: str,
        description: Optional[str] = None
    ) -> Calendar:
        self._require_valid(
            self.validator.validate_calendar_fields({'name': name}, require_name=True),
            "calendar create",
        )

        self._begin()
        try:
            calendar = await self.data.insert_calendar(
                division_id, name.strip(), description, self.clock()
            )
        except Exception as e:
            self._fail(f"Failed to create calendar {name!r} for division {division_id}", e)
            raise
        finally:
            self.state.is_loading = False

        division_name = self.state.division_name_for_id(division_id)
        if division_name is not None and division_name in self.state.calendars:
            self.state.calendars[division_name] = sorted(
                self.state.calendars[division_name] + [calendar], key=lambda c: c.name
            )
        logger.info(f"Created calendar {calendar.id} ({calendar.name}) for division {division_id}")
        return calendar

    async def update_calendar(self, calendar_id: str, **updates) -> Calendar:
        """Rename, describe or (de)activate a calendar, then reload its division"""
        if not calendar_id:
            self._require_valid(ValidationResult(is_valid=False, errors=["Calendar ID is required"]),
                                "calendar update")
        self._require_valid(self.validator.validate_calendar_fields(updates), "calendar update")
        if 'name' in updates:
            updates['name'] = updates['name'].strip()

        self._begin()
        try:
            calendar = await self.data.update_calendar(calendar_id, updates, self.clock())
            division_name = self.state.division_name_for_id(calendar.division_id)
            if division_name is not None:
                self._require_reread(
                    await self.resolver.reload_division_settings(division_name), "Calendar"
                )
        except Exception as e:
            self._fail(f"Failed to update calendar {calendar_id}", e)
            raise
        finally:
            self.state.is_loading = False

        logger.info(f"Updated calendar {calendar_id}: {sorted(updates)}")
        return calendar
