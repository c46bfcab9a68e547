"""
Fetch Deduplication Registry
=============================
One in-flight operation per logical key.

Callers asking for a key that is already running join the pending task
and receive its single outcome. Nothing is cached once the task settles:
the key is released in the task's own `finally`, so the next call starts
a fresh operation.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple

from .models import AllotmentKind

logger = logging.getLogger(__name__)


def division_key(division_name: str) -> Tuple[str, str]:
    return ("division", division_name)


def allotment_key(calendar_id: str, year: int, kind) -> Tuple[str, str, int, str]:
    kind_value = kind.value if isinstance(kind, AllotmentKind) else str(kind)
    return ("allotments", calendar_id, int(year), kind_value)


class FetchRegistry:
    """Maps in-flight keys to the shared task performing them"""

    def __init__(self):
        self._pending: Dict[Hashable, asyncio.Task] = {}

    def acquire(self, key: Hashable) -> Optional[asyncio.Task]:
        """Pending task for the key, or None when the caller must register one"""
        task = self._pending.get(key)
        if task is not None and task.done():
            # Settled tasks never stay registered; guard against a foreign release
            self._pending.pop(key, None)
            return None
        return task

    def register(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        if key in self._pending:
            raise RuntimeError(f"Operation already in flight for {key!r}")

        async def _settle():
            try:
                return await factory()
            finally:
                self.release(key)

        task = asyncio.ensure_future(_settle())
        self._pending[key] = task
        return task

    def release(self, key: Hashable) -> None:
        self._pending.pop(key, None)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Join the pending operation for `key` or start a new one"""
        task = self.acquire(key)
        if task is not None:
            logger.debug(f"Joining in-flight operation {key}")
        else:
            task = self.register(key, factory)
        # shield: a cancelled waiter must not cancel the shared operation
        return await asyncio.shield(task)

    def is_pending(self, key: Hashable) -> bool:
        return self.acquire(key) is not None

    def pending_keys(self) -> List[Hashable]:
        return [k for k, t in self._pending.items() if not t.done()]

    def __len__(self) -> int:
        return len(self.pending_keys())
