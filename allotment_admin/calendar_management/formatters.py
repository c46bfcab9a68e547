"""
Calendar Management Formatters
===============================
Display utilities for the calendar allotments page.
"""

from datetime import date, datetime
from typing import List, Optional

import pandas as pd

from .models import RangeOverrideResult, WeeklyVacationAllotment, YearlyAllotment


class CalendarAdminFormatters:
    """Display formatters for calendar allotments"""

    # ================================================================
    # BADGES & LABELS
    # ================================================================

    @staticmethod
    def format_override_badge(is_override: Optional[bool]) -> str:
        if is_override:
            return '✏️ Override'
        return '📋 Default'

    @staticmethod
    def format_week_label(week_start: date) -> str:
        """e.g. 'W02 · 08 Jan 2024'"""
        if week_start is None:
            return '-'
        return f"W{week_start.isocalendar()[1]:02d} · {week_start.strftime('%d %b %Y')}"

    @staticmethod
    def format_timestamp(value: Optional[datetime]) -> str:
        if value is None or pd.isna(value):
            return '-'
        return value.strftime('%d/%m/%Y %H:%M')

    @staticmethod
    def format_range_result(result: Optional[RangeOverrideResult]) -> str:
        if result is None:
            return "No allotments were changed"
        rows = "row" if result.affected_count == 1 else "rows"
        return (
            f"Updated {result.affected_count:,} {rows} "
            f"from {result.start_date.strftime('%d/%m/%Y')} to {result.end_date.strftime('%d/%m/%Y')}"
        )

    # ================================================================
    # TABLES
    # ================================================================

    @staticmethod
    def yearly_allotments_frame(allotments: List[YearlyAllotment]) -> pd.DataFrame:
        columns = ['Year', 'Max Allotment', 'Type', 'Override By', 'Override At', 'Reason']
        if not allotments:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame([
            {
                'Year': a.year,
                'Max Allotment': a.max_allotment,
                'Type': CalendarAdminFormatters.format_override_badge(a.is_override),
                'Override By': a.override_by or '-',
                'Override At': CalendarAdminFormatters.format_timestamp(a.override_at),
                'Reason': a.override_reason or '-',
            }
            for a in allotments
        ], columns=columns)

    @staticmethod
    def weekly_allotments_frame(weeks: List[WeeklyVacationAllotment]) -> pd.DataFrame:
        columns = ['Week', 'Max Allotment', 'Requests', 'Remaining', 'Type', 'Reason']
        if not weeks:
            return pd.DataFrame(columns=columns)
        df = pd.DataFrame([
            {
                'Week': CalendarAdminFormatters.format_week_label(w.week_start_date),
                'Max Allotment': w.max_allotment,
                'Requests': w.current_requests or 0,
                'Type': CalendarAdminFormatters.format_override_badge(w.is_override),
                'Reason': w.override_reason or '-',
            }
            for w in weeks
        ])
        df['Remaining'] = (df['Max Allotment'] - df['Requests']).clip(lower=0)
        return df[columns]
