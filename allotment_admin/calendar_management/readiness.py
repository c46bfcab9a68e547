"""Per-division gate: is the selected calendar's data safe to render?"""

from typing import Dict


class ReadinessTracker:
    """Division name -> bool, defaulting to False"""

    def __init__(self):
        self._flags: Dict[str, bool] = {}

    def is_ready(self, division: str) -> bool:
        return self._flags.get(division, False)

    def mark_ready(self, division: str) -> None:
        self._flags[division] = True

    def mark_not_ready(self, division: str) -> None:
        self._flags[division] = False

    def forget(self, division: str) -> None:
        self._flags.pop(division, None)

    def snapshot(self) -> Dict[str, bool]:
        return dict(self._flags)
