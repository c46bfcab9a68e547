"""
Calendar Management Data Layer
===============================
Domain-level queries over a RemoteStore.

Tables: divisions, calendars, zones, pld_sdv_allotments, vacation_allotments
Procedures: bulk_update_pld_sdv_range, bulk_update_vacation_range
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from .errors import CalendarNotFoundError, DivisionNotFoundError, RemoteFailureError
from .models import (
    AllotmentKind,
    Calendar,
    Division,
    RangeOverrideResult,
    WeeklyVacationAllotment,
    YearlyAllotment,
    Zone,
)
from .remote_store import RemoteStore
from .week_utils import parse_date

logger = logging.getLogger(__name__)

RANGE_PROCEDURES = {
    AllotmentKind.PLD_SDV: "bulk_update_pld_sdv_range",
    AllotmentKind.VACATION: "bulk_update_vacation_range",
}


# ==================== TYPE CONVERSION HELPERS ====================

def _to_int(value: Any, default: Optional[int] = 0) -> Optional[int]:
    if value is None:
        return default
    try:
        if hasattr(value, 'item'):  # numpy scalar
            value = value.item()
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any, default: Optional[bool] = False) -> Optional[bool]:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 't', 'yes')
    return bool(value)


def _to_date(value: Any) -> Optional[date]:
    if value is None:
        return None
    return parse_date(value)


def _to_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Unparseable timestamp from remote store: {value!r}")
        return None


def _to_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# ==================== ROW CONVERTERS ====================

def row_to_division(row: Dict[str, Any]) -> Division:
    return Division(id=_to_int(row['id']), name=row['name'])


def row_to_calendar(row: Dict[str, Any]) -> Calendar:
    return Calendar(
        id=str(row['id']),
        division_id=_to_int(row['division_id']),
        name=row['name'],
        is_active=_to_bool(row.get('is_active'), default=True),
        description=row.get('description') or None,
        created_at=_to_datetime(row.get('created_at')),
        updated_at=_to_datetime(row.get('updated_at')),
    )


def row_to_zone(row: Dict[str, Any]) -> Zone:
    return Zone(id=_to_int(row['id']), division_id=_to_int(row['division_id']), name=row['name'])


def row_to_yearly(row: Dict[str, Any], calendar_id: str, year: int) -> YearlyAllotment:
    return YearlyAllotment(
        year=year,
        max_allotment=_to_int(row.get('max_allotment'), default=0),
        calendar_id=calendar_id,
        is_override=_to_bool(row.get('is_override'), default=None),
        override_by=_to_str(row.get('override_by')),
        override_at=_to_datetime(row.get('override_at')),
        override_reason=row.get('override_reason'),
    )


def row_to_weekly(row: Dict[str, Any]) -> WeeklyVacationAllotment:
    week_start = _to_date(row['week_start_date'])
    return WeeklyVacationAllotment(
        week_start_date=week_start,
        vac_year=_to_int(row.get('vac_year'), default=week_start.year),
        max_allotment=_to_int(row.get('max_allotment'), default=0),
        calendar_id=_to_str(row.get('calendar_id')),
        id=_to_int(row.get('id'), default=None),
        current_requests=_to_int(row.get('current_requests'), default=None),
        is_override=_to_bool(row.get('is_override'), default=False),
        override_by=_to_str(row.get('override_by')),
        override_at=_to_datetime(row.get('override_at')),
        override_reason=row.get('override_reason'),
    )


# ==================== DATA SERVICE ====================

class CalendarAdminData:
    """Data access for divisions, calendars and allotments"""

    def __init__(self, store: RemoteStore):
        self.store = store

    # ================================================================
    # DIVISION SETTINGS
    # ================================================================

    async def get_divisions(self) -> List[Division]:
        rows = await self.store.select("divisions", columns=["id", "name"], order_by="name")
        return [row_to_division(r) for r in rows]

    async def get_division_by_name(self, division_name: str) -> Division:
        rows = await self.store.select(
            "divisions", columns=["id", "name"], eq={"name": division_name}, limit=1
        )
        if not rows:
            raise DivisionNotFoundError(division_name)
        return row_to_division(rows[0])

    async def get_division_calendars(self, division_id: int) -> List[Calendar]:
        rows = await self.store.select(
            "calendars", eq={"division_id": division_id}, order_by="name"
        )
        # Stable sort keeps auto-selection deterministic whatever the store's collation
        return sorted((row_to_calendar(r) for r in rows), key=lambda c: c.name)

    async def get_division_zones(self, division_id: int) -> List[Zone]:
        rows = await self.store.select(
            "zones", columns=["id", "name", "division_id"],
            eq={"division_id": division_id}, order_by="name"
        )
        return [row_to_zone(r) for r in rows]

    # ================================================================
    # ALLOTMENT READS
    # ================================================================

    async def get_yearly_allotment(self, calendar_id: str, year: int) -> Optional[YearlyAllotment]:
        """Single (calendar, year) record, or None when the row is absent"""
        rows = await self.store.select(
            "pld_sdv_allotments",
            columns=["year", "max_allotment", "is_override", "override_by",
                     "override_at", "override_reason"],
            eq={"calendar_id": calendar_id, "year": year},
            limit=1,
        )
        return row_to_yearly(rows[0], calendar_id, year) if rows else None

    async def get_weekly_allotments(self, calendar_id: str, year: int) -> List[WeeklyVacationAllotment]:
        rows = await self.store.select(
            "vacation_allotments",
            eq={"calendar_id": calendar_id, "vac_year": year},
            order_by="week_start_date",
        )
        return [row_to_weekly(r) for r in rows]

    async def get_vacation_week_starts(self, calendar_id: str, year: int) -> List[date]:
        rows = await self.store.select(
            "vacation_allotments",
            columns=["week_start_date"],
            eq={"calendar_id": calendar_id, "vac_year": year},
            order_by="week_start_date",
        )
        weeks = []
        for row in rows:
            try:
                weeks.append(_to_date(row.get('week_start_date')))
            except (TypeError, ValueError):
                logger.warning(f"Skipping malformed week_start_date for calendar {calendar_id}: {row!r}")
        return [w for w in weeks if w is not None]

    # ================================================================
    # ALLOTMENT WRITES
    # ================================================================

    async def upsert_yearly_allotment(
        self,
        calendar_id: str,
        year: int,
        max_allotment: int,
        user_id: str,
        override_at: datetime,
        reason: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        record = {
            "calendar_id": calendar_id,
            "year": year,
            "date": date(year, 1, 1),  # conventional key for yearly rows
            "max_allotment": max_allotment,
            "is_override": True,
            "override_by": user_id,
            "override_at": override_at,
            "override_reason": reason,
            "updated_at": override_at,
        }
        return await self.store.upsert("pld_sdv_allotments", [record], on_conflict=("calendar_id", "year"))

    async def upsert_weekly_allotments(
        self,
        calendar_id: str,
        week_starts: List[date],
        max_allotment: int,
        user_id: str,
        override_at: datetime,
        reason: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        records = [
            {
                "calendar_id": calendar_id,
                "week_start_date": week_start,
                "vac_year": week_start.year,
                "max_allotment": max_allotment,
                "is_override": True,
                "override_by": user_id,
                "override_at": override_at,
                "override_reason": reason,
            }
            for week_start in week_starts
        ]
        if not records:
            return []
        return await self.store.upsert(
            "vacation_allotments", records, on_conflict=("calendar_id", "week_start_date")
        )

    async def bulk_update_range(
        self,
        kind: AllotmentKind,
        calendar_id: str,
        start_date: date,
        end_date: date,
        max_allotment: int,
        user_id: str,
        reason: Optional[str] = None
    ) -> Optional[RangeOverrideResult]:
        rows = await self.store.rpc(
            RANGE_PROCEDURES[AllotmentKind(kind)],
            {
                "p_calendar_id": calendar_id,
                "p_start_date": start_date,
                "p_end_date": end_date,
                "p_max_allotment": max_allotment,
                "p_user_id": user_id,
                "p_reason": reason,
            },
        )
        if not rows:
            return None

        first = rows[0]
        try:
            return RangeOverrideResult(
                affected_count=_to_int(first.get('affected_count'), default=0),
                start_date=_to_date(first.get('start_date')) or start_date,
                end_date=_to_date(first.get('end_date')) or end_date,
            )
        except (TypeError, ValueError) as e:
            raise RemoteFailureError(f"Unexpected bulk update result {first!r}: {e}") from e

    # ================================================================
    # CALENDARS
    # ================================================================

    async def insert_calendar(
        self,
        division_id: int,
        name: str,
        description: Optional[str],
        created_at: datetime
    ) -> Calendar:
        row = await self.store.insert("calendars", {
            "division_id": division_id,
            "name": name,
            "description": description,
            "is_active": True,
            "created_at": created_at,
            "updated_at": created_at,
        })
        return row_to_calendar(row)

    async def update_calendar(
        self,
        calendar_id: str,
        updates: Dict[str, Any],
        updated_at: datetime
    ) -> Calendar:
        rows = await self.store.update(
            "calendars", {**updates, "updated_at": updated_at}, eq={"id": calendar_id}
        )
        if not rows:
            raise CalendarNotFoundError(calendar_id)
        return row_to_calendar(rows[0])
