"""
Allotment Cache
================
Per-calendar snapshot of yearly and weekly allotments plus edit buffers.

Entries are created lazily on the first successful fetch and removed only
by explicit invalidation. Every method is synchronous: callers never hold
an entry across an await.
"""

import logging
from dataclasses import fields, replace
from typing import Dict, Iterable, List, Optional

from .models import AllotmentKind, CacheEntry, WeeklyVacationAllotment, YearlyAllotment

logger = logging.getLogger(__name__)

_ENTRY_FIELDS = {f.name for f in fields(CacheEntry)}


class AllotmentCache:
    """Calendar id -> CacheEntry"""

    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, calendar_id: str) -> Optional[CacheEntry]:
        return self._entries.get(calendar_id)

    def __contains__(self, calendar_id: str) -> bool:
        return calendar_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def calendar_ids(self) -> List[str]:
        return list(self._entries)

    def missing_years(self, calendar_id: str, years: Iterable[int]) -> List[int]:
        """Years for which either allotment kind has not been loaded yet"""
        entry = self._entries.get(calendar_id)
        if entry is None:
            return list(years)
        return [y for y in years if not entry.has_year(y)]

    # ================================================================
    # WRITES
    # ================================================================

    def merge(self, calendar_id: str, **changes) -> CacheEntry:
        """
        Shallow field-by-field merge into the calendar's entry.

        Only the named fields are replaced, so two writers touching different
        halves of the same entry never clobber each other.
        """
        unknown = set(changes) - _ENTRY_FIELDS
        if unknown:
            raise ValueError(f"Unknown cache entry fields: {sorted(unknown)}")
        current = self._entries.get(calendar_id) or CacheEntry()
        entry = replace(current, **changes)
        self._entries[calendar_id] = entry
        return entry

    def put_yearly(self, calendar_id: str, allotment: YearlyAllotment) -> CacheEntry:
        current = self._entries.get(calendar_id) or CacheEntry()
        year = allotment.year
        yearly = sorted(
            [a for a in current.yearly_allotments if a.year != year] + [allotment],
            key=lambda a: a.year,
        )
        return self.merge(
            calendar_id,
            yearly_allotments=yearly,
            pld_sdv_edit_buffer={**current.pld_sdv_edit_buffer, year: str(allotment.max_allotment)},
            loaded_years=current.loaded_years | {(AllotmentKind.PLD_SDV, year)},
        )

    def put_weekly(self, calendar_id: str, year: int,
                   weeks: List[WeeklyVacationAllotment]) -> CacheEntry:
        """Replace the weeks of one vacation year, keeping the other years"""
        current = self._entries.get(calendar_id) or CacheEntry()
        weekly = sorted(
            [w for w in current.weekly_allotments if w.vac_year != year] + list(weeks),
            key=lambda w: w.week_start_date,
        )
        buffer_value = str(weeks[0].max_allotment) if weeks else "0"
        return self.merge(
            calendar_id,
            weekly_allotments=weekly,
            vacation_edit_buffer={**current.vacation_edit_buffer, year: buffer_value},
            loaded_years=current.loaded_years | {(AllotmentKind.VACATION, year)},
        )

    def set_edit_value(self, calendar_id: str, kind: AllotmentKind, year: int, value: str) -> CacheEntry:
        current = self._entries.get(calendar_id) or CacheEntry()
        if AllotmentKind(kind) == AllotmentKind.PLD_SDV:
            return self.merge(calendar_id, pld_sdv_edit_buffer={**current.pld_sdv_edit_buffer, year: value})
        return self.merge(calendar_id, vacation_edit_buffer={**current.vacation_edit_buffer, year: value})

    # ================================================================
    # INVALIDATION
    # ================================================================

    def invalidate(self, calendar_id: str) -> bool:
        removed = self._entries.pop(calendar_id, None) is not None
        if removed:
            logger.debug(f"Evicted cached allotments for calendar {calendar_id}")
        return removed

    def invalidate_many(self, calendar_ids: Iterable[str]) -> int:
        return sum(1 for cid in list(calendar_ids) if self.invalidate(cid))

    def clear(self) -> None:
        self._entries.clear()
