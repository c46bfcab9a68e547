"""
Remote Store Interface
=======================
The persistence boundary consumed by the calendar coordinator.

Implementations must raise RemoteFailureError (or RemoteTimeoutError) for
any failure of the underlying service. Every method is a coroutine; each
call is a suspension point for the coordinator.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


class RemoteStore(ABC):
    """Row-select, row-upsert and named bulk procedures"""

    @abstractmethod
    async def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        eq: Optional[Dict[str, Any]] = None,
        gte: Optional[Dict[str, Any]] = None,
        lte: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Select rows matching equality and inclusive range filters"""

    @abstractmethod
    async def upsert(
        self,
        table: str,
        rows: List[Dict[str, Any]],
        on_conflict: Sequence[str]
    ) -> List[Dict[str, Any]]:
        """Insert rows, updating existing ones that collide on the conflict key"""

    @abstractmethod
    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a single row and return it as stored"""

    @abstractmethod
    async def update(
        self,
        table: str,
        values: Dict[str, Any],
        eq: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Update rows matching the equality filter and return them"""

    @abstractmethod
    async def rpc(self, name: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Invoke a named server-side procedure"""
