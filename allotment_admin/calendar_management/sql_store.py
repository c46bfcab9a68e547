"""
SQL Remote Store
=================
RemoteStore implementation over a SQLAlchemy engine.

- Statements are built with sqlalchemy.text and bound parameters only
- Table/column/procedure names are checked against a strict pattern
- Reads go through pandas.read_sql, NULLs come back as None
- Blocking calls run in a worker thread, bounded by REMOTE_TIMEOUT_SECONDS

Upserts need INSERT ... ON CONFLICT ... RETURNING (PostgreSQL, SQLite 3.35+).
Procedures use PostgreSQL named notation.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import config
from .errors import RemoteFailureError, RemoteTimeoutError
from .remote_store import RemoteStore

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _safe_identifier(name: str) -> str:
    """Reject anything that is not a plain SQL identifier"""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _frame_to_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as dicts with NaN/NaT replaced by None"""
    if df.empty:
        return []
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


# ==================== SQL BUILDERS ====================

def build_select_sql(
    table: str,
    columns: Optional[Sequence[str]] = None,
    eq: Optional[Dict[str, Any]] = None,
    gte: Optional[Dict[str, Any]] = None,
    lte: Optional[Dict[str, Any]] = None,
    order_by: Optional[str] = None,
    ascending: bool = True,
    limit: Optional[int] = None
) -> Tuple[str, Dict[str, Any]]:
    column_list = ", ".join(_safe_identifier(c) for c in columns) if columns else "*"
    conditions = []
    params: Dict[str, Any] = {}

    for prefix, operator, filters in (("eq", "=", eq), ("gte", ">=", gte), ("lte", "<=", lte)):
        for column, value in (filters or {}).items():
            param = f"{prefix}_{_safe_identifier(column)}"
            conditions.append(f"{column} {operator} :{param}")
            params[param] = value

    query = f"SELECT {column_list} FROM {_safe_identifier(table)}"
    if conditions:
        query += " WHERE " + " AND ".join(conditions)
    if order_by:
        query += f" ORDER BY {_safe_identifier(order_by)} {'ASC' if ascending else 'DESC'}"
    if limit is not None:
        query += " LIMIT :limit"
        params['limit'] = int(limit)
    return query, params


def build_upsert_sql(table: str, columns: Sequence[str], on_conflict: Sequence[str]) -> str:
    if not on_conflict:
        raise ValueError("Upsert requires at least one conflict column")
    cols = [_safe_identifier(c) for c in columns]
    keys = [_safe_identifier(c) for c in on_conflict]
    updates = [f"{c} = excluded.{c}" for c in cols if c not in keys]

    query = (
        f"INSERT INTO {_safe_identifier(table)} ({', '.join(cols)}) "
        f"VALUES ({', '.join(':' + c for c in cols)}) "
        f"ON CONFLICT ({', '.join(keys)}) "
    )
    query += f"DO UPDATE SET {', '.join(updates)}" if updates else "DO NOTHING"
    return query + " RETURNING *"


def build_insert_sql(table: str, columns: Sequence[str]) -> str:
    cols = [_safe_identifier(c) for c in columns]
    return (
        f"INSERT INTO {_safe_identifier(table)} ({', '.join(cols)}) "
        f"VALUES ({', '.join(':' + c for c in cols)}) RETURNING *"
    )


def build_update_sql(
    table: str,
    values: Dict[str, Any],
    eq: Dict[str, Any]
) -> Tuple[str, Dict[str, Any]]:
    if not values:
        raise ValueError("Update requires at least one value")
    if not eq:
        raise ValueError("Update requires an equality filter")

    params: Dict[str, Any] = {}
    assignments = []
    for column, value in values.items():
        param = f"set_{_safe_identifier(column)}"
        assignments.append(f"{column} = :{param}")
        params[param] = value

    conditions = []
    for column, value in eq.items():
        param = f"eq_{_safe_identifier(column)}"
        conditions.append(f"{column} = :{param}")
        params[param] = value

    query = (
        f"UPDATE {_safe_identifier(table)} SET {', '.join(assignments)} "
        f"WHERE {' AND '.join(conditions)} RETURNING *"
    )
    return query, params


def build_rpc_sql(name: str, params: Dict[str, Any]) -> str:
    args = ", ".join(f"{_safe_identifier(k)} => :{k}" for k in params)
    return f"SELECT * FROM {_safe_identifier(name)}({args})"


# ==================== STORE ====================

class SqlRemoteStore(RemoteStore):
    """Remote store backed by a relational database"""

    def __init__(self, engine: Optional[Engine] = None, timeout: Optional[float] = None):
        if engine is None:
            from ..db import get_db_engine
            engine = get_db_engine()
        self.engine = engine
        self.timeout = timeout if timeout is not None else config.get_app_setting('REMOTE_TIMEOUT_SECONDS', 15)

    async def _run(self, operation: str, func, *args):
        """Run a blocking call off the event loop, mapping failures"""
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Remote {operation} timed out after {self.timeout}s")
            raise RemoteTimeoutError(f"{operation} timed out after {self.timeout}s") from e
        except SQLAlchemyError as e:
            logger.error(f"Remote {operation} failed: {e}")
            raise RemoteFailureError(f"{operation} failed: {e}") from e

    # ---------- blocking bodies ----------

    def _select_sync(self, query: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            df = pd.read_sql(text(query), conn, params=params)
        return _frame_to_records(df)

    def _write_sync(self, query: str, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        results = []
        with self.engine.begin() as conn:
            for row in rows:
                result = conn.execute(text(query), row)
                results.extend(dict(r._mapping) for r in result)
        return results

    # ---------- RemoteStore ----------

    async def select(self, table, columns=None, eq=None, gte=None, lte=None,
                     order_by=None, ascending=True, limit=None):
        query, params = build_select_sql(table, columns, eq, gte, lte, order_by, ascending, limit)
        return await self._run(f"select from {table}", self._select_sync, query, params)

    async def upsert(self, table, rows, on_conflict):
        if not rows:
            return []
        columns = list(rows[0].keys())
        if any(set(row.keys()) != set(columns) for row in rows):
            raise ValueError("All upserted rows must share the same columns")
        query = build_upsert_sql(table, columns, on_conflict)
        return await self._run(f"upsert into {table}", self._write_sync, query, rows)

    async def insert(self, table, row):
        query = build_insert_sql(table, list(row.keys()))
        rows = await self._run(f"insert into {table}", self._write_sync, query, [row])
        return rows[0] if rows else dict(row)

    async def update(self, table, values, eq):
        query, params = build_update_sql(table, values, eq)
        return await self._run(f"update of {table}", self._write_sync, query, [params])

    async def rpc(self, name, params):
        query = build_rpc_sql(name, params)
        return await self._run(f"procedure {name}", self._write_sync, query, [params])
