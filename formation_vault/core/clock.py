"""
Logical clock sources.
The registry never reads wall time itself; it is handed an integer height.
Every clock takes an optional store view: mutating calls pass the view of
their own transaction so the reading is taken under the write lock.
"""

import time

from .store import IFormationStore


class SystemClock:
    """Integer Unix seconds."""

    def now(self, view=None) -> int:
        return int(time.time())


class HeightClock:
    """Block-height style counter derived from committed state.

    The current height is one past the last committed mutating call, so it
    is stable across reads and only moves when a mutation commits.
    """

    def __init__(self, store: IFormationStore):
        self.store = store

    def now(self, view=None) -> int:
        if view is not None:
            return view.get_state().last_calibration + 1
        with self.store.reader() as view:
            return view.get_state().last_calibration + 1


class FixedClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, height: int = 1):
        self.height = height

    def now(self, view=None) -> int:
        return self.height

    def advance(self, blocks: int = 1) -> int:
        self.height += blocks
        return self.height
