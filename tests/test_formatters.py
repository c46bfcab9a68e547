"""Tests for display formatters."""

from datetime import date, datetime

from allotment_admin.calendar_management.formatters import CalendarAdminFormatters as fmt
from allotment_admin.calendar_management.models import (
    RangeOverrideResult,
    WeeklyVacationAllotment,
    YearlyAllotment,
)


def test_override_badge():
    assert fmt.format_override_badge(True) == '✏️ Override'
    assert fmt.format_override_badge(None) == '📋 Default'


def test_week_label_uses_iso_week_number():
    assert fmt.format_week_label(date(2024, 1, 8)) == 'W02 · 08 Jan 2024'
    assert fmt.format_week_label(None) == '-'


def test_timestamp():
    assert fmt.format_timestamp(datetime(2025, 6, 1, 9, 5)) == '01/06/2025 09:05'
    assert fmt.format_timestamp(None) == '-'


def test_range_result():
    result = RangeOverrideResult(affected_count=1, start_date=date(2025, 1, 6), end_date=date(2025, 1, 12))

    assert fmt.format_range_result(result) == "Updated 1 row from 06/01/2025 to 12/01/2025"
    assert fmt.format_range_result(None) == "No allotments were changed"


def test_yearly_frame():
    df = fmt.yearly_allotments_frame([
        YearlyAllotment(year=2025, max_allotment=12),
        YearlyAllotment(year=2026, max_allotment=7, is_override=True, override_by="U1",
                        override_reason="policy change"),
    ])

    assert list(df['Year']) == [2025, 2026]
    assert list(df['Type']) == ['📋 Default', '✏️ Override']
    assert df.iloc[1]['Reason'] == 'policy change'


def test_empty_frames_keep_columns():
    assert list(fmt.yearly_allotments_frame([]).columns) == [
        'Year', 'Max Allotment', 'Type', 'Override By', 'Override At', 'Reason'
    ]
    assert fmt.weekly_allotments_frame([]).empty


def test_weekly_frame_remaining_never_negative():
    df = fmt.weekly_allotments_frame([
        WeeklyVacationAllotment(week_start_date=date(2025, 1, 6), vac_year=2025, max_allotment=4,
                                current_requests=1),
        WeeklyVacationAllotment(week_start_date=date(2025, 1, 13), vac_year=2025, max_allotment=2,
                                current_requests=5),
        WeeklyVacationAllotment(week_start_date=date(2025, 1, 20), vac_year=2025, max_allotment=3),
    ])

    assert list(df['Remaining']) == [3, 0, 3]
    assert list(df.columns) == ['Week', 'Max Allotment', 'Requests', 'Remaining', 'Type', 'Reason']
