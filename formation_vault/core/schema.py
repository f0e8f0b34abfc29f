"""
Formation registry data model.
Records, their bookkeeping rows, access grants and the global registry state.
"""

from dataclasses import dataclass, asdict
from typing import Dict, List, Optional


@dataclass
class Formation:
    id: int
    signature: str
    owner: str
    content_hash: str
    metadata: str
    cluster: str
    resonance_tags: List[str]
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class FormationHistory:
    formation_id: int
    formation_count: int
    last_editor: str
    origin_tag: str


@dataclass
class ExtendedMetadata:
    formation_id: int
    stability: int
    complexity: int
    pattern: str


@dataclass
class AccessGrant:
    formation_id: int
    entity: str
    classification: str  # observer, manipulator, sovereign
    granted_at: int
    expires_at: int
    can_modify: bool

    def is_expired(self, now: int) -> bool:
        """A grant is live up to, but not including, its expiry height."""
        return now >= self.expires_at


@dataclass
class RegistryState:
    """Global counters, committed together with the records of one call."""
    sequence_tracker: int = 0
    total_operations: int = 0
    last_calibration: int = 0
    flux_indicator: bool = False

    def record_operation(self, now: int, flux: Optional[bool] = None) -> None:
        self.total_operations += 1
        self.last_calibration = now
        if flux is not None:
            self.flux_indicator = flux


@dataclass
class Context:
    """Implicit environment of one invocation: who is calling, and when.

    Either `now` is given up front, or `clock` is read once inside the
    invocation's transaction so the height matches the state it mutates.
    """
    caller: str
    now: Optional[int] = None
    clock: Optional[object] = None

    def resolve_now(self, view=None) -> int:
        if self.now is None:
            if self.clock is None:
                raise ValueError("Context needs either now or clock")
            self.now = self.clock.now(view)
        return self.now
