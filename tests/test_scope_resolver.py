"""Tests for division loading, calendar auto-selection and readiness."""

import asyncio

import pytest

from allotment_admin.calendar_management.models import Calendar, ScopeState
from allotment_admin.calendar_management.scope_resolver import pick_calendar


def cal(cid, name, active=True):
    return Calendar(id=cid, division_id=1, name=name, is_active=active)


class TestPickCalendar:

    def test_keeps_previous_when_still_active(self):
        calendars = [cal("a", "Alpha"), cal("b", "Beta")]
        assert pick_calendar(calendars, "b") == "b"

    def test_previous_inactive_falls_back_to_first_active_by_name(self):
        calendars = [cal("z", "Zulu"), cal("b", "Beta", active=False), cal("m", "Mike")]
        assert pick_calendar(calendars, "b") == "m"

    def test_previous_missing(self):
        calendars = [cal("b", "Beta"), cal("a", "Alpha")]
        assert pick_calendar(calendars, "gone") == "a"

    def test_all_inactive_takes_first_by_name(self):
        calendars = [cal("y", "Yankee", active=False), cal("x", "Xray", active=False)]
        assert pick_calendar(calendars) == "x"

    def test_no_calendars(self):
        assert pick_calendar([], "a") is None


@pytest.mark.asyncio
class TestEnsureDivisionLoaded:

    async def test_loads_settings_and_selects_first_active_calendar(self, coordinator, store):
        await coordinator.select_division("North")

        assert coordinator.selected_calendar_id == "cal-alpha"
        assert [c.name for c in coordinator.get_calendars("North")] == ["Alpha", "Beta"]
        assert [z.name for z in coordinator.state.division_zones["North"]] == ["Zone 1"]
        assert coordinator.get_scope_state("North") == ScopeState.READY
        assert coordinator.is_ready("North")
        assert store.count("select", "divisions") == 1
        assert store.count("select", "calendars") == 1
        assert store.count("select", "zones") == 1

    async def test_inactive_calendars_are_skipped(self, coordinator):
        await coordinator.select_division("South")

        assert coordinator.selected_calendar_id == "cal-delta"

    async def test_division_without_calendars_is_ready_with_no_selection(self, coordinator, store):
        await coordinator.select_division("East")

        assert coordinator.selected_calendar_id is None
        assert coordinator.is_ready("East")
        assert store.count("select", "pld_sdv_allotments") == 0

    async def test_concurrent_loads_share_one_settings_fetch(self, coordinator, store):
        results = await asyncio.gather(*(coordinator.ensure_division_loaded("North") for _ in range(3)))

        assert results == [True, True, True]
        assert store.count("select", "divisions") == 1
        assert store.count("select", "calendars") == 1

    async def test_loaded_division_is_not_refetched(self, coordinator, store):
        await coordinator.select_division("North")
        store.reset_calls()

        assert await coordinator.ensure_division_loaded("North") is True
        assert store.calls == []

    async def test_unknown_division_sets_error(self, coordinator):
        await coordinator.select_division("Atlantis")

        assert 'Division "Atlantis" not found' in coordinator.error
        assert coordinator.get_scope_state("Atlantis") == ScopeState.ERROR
        assert not coordinator.is_ready("Atlantis")
        assert coordinator.selected_calendar_id is None
        assert coordinator.state.is_switching_division is False

    async def test_settings_failure_resets_loading_flags(self, coordinator, store):
        store.fail("select", "calendars")

        assert await coordinator.ensure_division_loaded("North") is False
        assert coordinator.error.startswith("Failed to load settings for division North")
        assert coordinator.state.is_division_loading is False
        assert coordinator.state.is_calendars_loading is False
        assert not coordinator.validate_division_state("North")


@pytest.mark.asyncio
class TestCalendarSelection:

    async def test_selecting_same_calendar_is_a_no_op(self, coordinator, store):
        await coordinator.select_division("North")
        store.reset_calls()

        await coordinator.select_calendar("cal-alpha")

        assert store.calls == []
        assert coordinator.is_ready("North")

    async def test_selecting_none_is_immediately_ready(self, coordinator):
        await coordinator.select_division("North")
        await coordinator.select_calendar(None)

        assert coordinator.is_ready("North")
        assert coordinator.get_displayed_allotments().calendar_id is None

    async def test_allotment_failure_leaves_division_not_ready(self, coordinator, store):
        await coordinator.select_division("North")
        store.fail("select", "vacation_allotments")

        await coordinator.select_calendar("cal-beta")

        assert not coordinator.is_ready("North")
        assert coordinator.get_scope_state("North") == ScopeState.ERROR
        assert "Failed to load vacation allotments for calendar cal-beta" in coordinator.error

    async def test_stale_fetch_does_not_overwrite_newer_selection(self, coordinator, store):
        await coordinator.select_division("North")
        gate = store.block("pld_sdv_allotments")

        pending = asyncio.ensure_future(coordinator.select_calendar("cal-beta"))
        await asyncio.sleep(0.01)
        assert coordinator.selected_calendar_id == "cal-beta"

        # Back to the cached calendar while Beta is still loading
        await coordinator.select_calendar("cal-alpha")
        assert coordinator.is_ready("North")

        gate.set()
        await pending

        display = coordinator.get_displayed_allotments()
        assert display.calendar_id == "cal-alpha"
        assert display.yearly_for(2025).max_allotment == 12
        assert coordinator.is_ready("North")
        # Beta's results still land in the cache
        assert coordinator.cache.missing_years("cal-beta", [2025, 2026]) == []

    async def test_previous_selection_restored_on_return(self, coordinator, store):
        await coordinator.select_division("North")
        await coordinator.select_calendar("cal-beta")
        await coordinator.select_division("South")
        store.reset_calls()

        await coordinator.select_division("North")

        assert coordinator.selected_calendar_id == "cal-beta"
        assert coordinator.is_ready("North")
        assert store.calls == []


@pytest.mark.asyncio
class TestDivisionSwitching:

    async def test_switch_clears_selection_before_loading(self, coordinator, store):
        await coordinator.select_division("North")
        gate = store.block("calendars")

        pending = asyncio.ensure_future(coordinator.select_division("South"))
        await asyncio.sleep(0.01)

        assert coordinator.active_division == "South"
        assert coordinator.selected_calendar_id is None
        assert coordinator.get_displayed_allotments().yearly_allotments == []
        assert coordinator.state.is_switching_division is True
        assert not coordinator.is_ready("South")
        assert coordinator.is_ready("North")

        gate.set()
        await pending

        assert coordinator.selected_calendar_id == "cal-delta"
        assert coordinator.state.is_switching_division is False

    async def test_superseded_switch_leaves_newer_division_in_charge(self, coordinator, store):
        gate = store.block("calendars")

        first = asyncio.ensure_future(coordinator.select_division("North"))
        await asyncio.sleep(0.01)
        second = asyncio.ensure_future(coordinator.select_division("South"))
        await asyncio.sleep(0.01)

        gate.set()
        await asyncio.gather(first, second)

        assert coordinator.active_division == "South"
        assert coordinator.selected_calendar_id == "cal-delta"
        assert coordinator.is_ready("South")
        # North's settings are loaded but its calendar was never auto-selected
        assert coordinator.validate_division_state("North")
        assert not coordinator.is_ready("North")

    async def test_reselecting_unready_division_revalidates(self, coordinator, store):
        await coordinator.select_division("North")
        coordinator.tracker.mark_not_ready("North")

        await coordinator.prepare_division_switch("North", "North")

        assert coordinator.is_ready("North")


@pytest.mark.asyncio
class TestCleanup:

    async def test_cleanup_unloads_division_and_its_cache(self, coordinator):
        await coordinator.select_division("North")
        await coordinator.select_calendar("cal-beta")
        await coordinator.fetch_vacation_allotment_weeks("cal-alpha", 2025)

        coordinator.cleanup_division_state("North")

        assert "cal-alpha" not in coordinator.cache
        assert "cal-beta" not in coordinator.cache
        assert not coordinator.validate_division_state("North")
        assert coordinator.get_scope_state("North") == ScopeState.UNLOADED
        assert coordinator.active_division is None
        assert coordinator.selected_calendar_id is None
        assert "cal-alpha" not in coordinator.state.vacation_allotment_weeks

    async def test_cleanup_of_other_division_keeps_active_one(self, coordinator):
        await coordinator.select_division("North")
        await coordinator.select_division("South")

        coordinator.cleanup_division_state("North")

        assert coordinator.active_division == "South"
        assert coordinator.selected_calendar_id == "cal-delta"
        assert "cal-delta" in coordinator.cache
