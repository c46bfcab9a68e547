"""Shared fixtures: an in-memory RemoteStore and a coordinator wired to it."""

import asyncio
import copy
import itertools
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

import pytest

from allotment_admin.calendar_management.coordinator import CalendarAdminCoordinator
from allotment_admin.calendar_management.errors import RemoteFailureError
from allotment_admin.calendar_management.remote_store import RemoteStore

TODAY = date(2025, 6, 1)
NOW = datetime(2025, 6, 1, 12, 0)


class FakeRemoteStore(RemoteStore):
    """
    Dict-of-lists tables with a call log.

    `fail(method, target)` makes the next calls raise; `block(target)` makes
    selects on a table wait for the returned event.
    """

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = tables or {}
        self.calls: List[tuple] = []
        self.procedures: Dict[str, Callable[[Dict[str, Any]], List[Dict[str, Any]]]] = {}
        self._failures: Dict[tuple, Exception] = {}
        self._gates: Dict[str, asyncio.Event] = {}
        self._ids = itertools.count(1000)

    # ---------- test hooks ----------

    def fail(self, method: str, target: str, error: Optional[Exception] = None) -> None:
        self._failures[(method, target)] = error or RemoteFailureError(f"{method} {target} unavailable")

    def recover(self, method: str, target: str) -> None:
        self._failures.pop((method, target), None)

    def block(self, table: str) -> asyncio.Event:
        gate = asyncio.Event()
        self._gates[table] = gate
        return gate

    def count(self, method: str, target: Optional[str] = None) -> int:
        return sum(1 for call in self.calls
                   if call[0] == method and (target is None or call[1] == target))

    def reset_calls(self) -> None:
        self.calls.clear()

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    async def _enter(self, method: str, target: str, payload: Any) -> None:
        self.calls.append((method, target, payload))
        await asyncio.sleep(0)
        error = self._failures.get((method, target))
        if error is not None:
            raise error

    # ---------- RemoteStore ----------

    async def select(self, table, columns=None, eq=None, gte=None, lte=None,
                     order_by=None, ascending=True, limit=None):
        await self._enter("select", table, dict(eq or {}))
        gate = self._gates.get(table)
        if gate is not None:
            await gate.wait()

        result = []
        for row in self.rows(table):
            if any(row.get(k) != v for k, v in (eq or {}).items()):
                continue
            if any(row.get(k) is None or row.get(k) < v for k, v in (gte or {}).items()):
                continue
            if any(row.get(k) is None or row.get(k) > v for k, v in (lte or {}).items()):
                continue
            result.append(row)

        if order_by:
            result = sorted(result, key=lambda r: r.get(order_by), reverse=not ascending)
        if limit is not None:
            result = result[:limit]
        if columns:
            return [{c: copy.copy(r.get(c)) for c in columns} for r in result]
        return [dict(r) for r in result]

    async def upsert(self, table, rows, on_conflict):
        await self._enter("upsert", table, [dict(r) for r in rows])
        stored = []
        for row in rows:
            existing = next(
                (r for r in self.rows(table) if all(r.get(k) == row.get(k) for k in on_conflict)),
                None,
            )
            if existing is None:
                existing = {"id": next(self._ids)}
                self.rows(table).append(existing)
            existing.update(row)
            stored.append(dict(existing))
        return stored

    async def insert(self, table, row):
        await self._enter("insert", table, dict(row))
        stored = {"id": f"{table}-{next(self._ids)}", **row}
        self.rows(table).append(stored)
        return dict(stored)

    async def update(self, table, values, eq):
        await self._enter("update", table, dict(values))
        changed = []
        for row in self.rows(table):
            if all(row.get(k) == v for k, v in eq.items()):
                row.update(values)
                changed.append(dict(row))
        return changed

    async def rpc(self, name, params):
        await self._enter("rpc", name, dict(params))
        handler = self.procedures.get(name)
        if handler is None:
            raise RemoteFailureError(f"Unknown procedure {name}")
        return handler(params)


def seed_tables() -> Dict[str, List[Dict[str, Any]]]:
    """
    North: Alpha, Beta (both active).
    South: Charlie (inactive), Delta (active).
    East: no calendars.
    """
    return {
        "divisions": [
            {"id": 1, "name": "North"},
            {"id": 2, "name": "South"},
            {"id": 3, "name": "East"},
        ],
        "calendars": [
            {"id": "cal-beta", "division_id": 1, "name": "Beta", "is_active": True, "description": None},
            {"id": "cal-alpha", "division_id": 1, "name": "Alpha", "is_active": True, "description": None},
            {"id": "cal-charlie", "division_id": 2, "name": "Charlie", "is_active": False, "description": None},
            {"id": "cal-delta", "division_id": 2, "name": "Delta", "is_active": True, "description": None},
        ],
        "zones": [
            {"id": 10, "division_id": 1, "name": "Zone 1"},
        ],
        "pld_sdv_allotments": [
            {"id": 1, "calendar_id": "cal-alpha", "year": 2025, "max_allotment": 12, "is_override": False,
             "override_by": None, "override_at": None, "override_reason": None},
        ],
        "vacation_allotments": [
            {"id": 2, "calendar_id": "cal-alpha", "week_start_date": date(2025, 1, 6), "vac_year": 2025,
             "max_allotment": 4, "current_requests": 1, "is_override": False},
            {"id": 3, "calendar_id": "cal-alpha", "week_start_date": date(2025, 1, 13), "vac_year": 2025,
             "max_allotment": 4, "current_requests": 0, "is_override": False},
        ],
    }


@pytest.fixture
def store():
    return FakeRemoteStore(seed_tables())


@pytest.fixture
def make_coordinator():
    def _make(store, **kwargs):
        kwargs.setdefault("user_id_provider", lambda: "admin-1")
        kwargs.setdefault("today", lambda: TODAY)
        kwargs.setdefault("clock", lambda: NOW)
        kwargs.setdefault("years_ahead", 1)
        return CalendarAdminCoordinator(store, **kwargs)
    return _make


@pytest.fixture
def coordinator(store, make_coordinator):
    return make_coordinator(store)
