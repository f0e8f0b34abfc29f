"""
Anomaly taxonomy for the formation registry.
Failures are returned as values; AnomalyError only carries one to the
transaction boundary so the whole invocation rolls back.
"""

from dataclasses import dataclass
from enum import Enum


class AnomalyKind(Enum):
    TEMPORAL_VIOLATION = 100
    AUTHORIZATION_FAILURE = 101
    INVALID_CLUSTER = 102
    DIMENSIONAL_BREACH = 103
    MALFORMED_INPUT = 104
    FORMATION_NOT_FOUND = 105
    COLLISION = 106
    INVALID_METADATA = 107
    INSUFFICIENT_CLEARANCE = 108
    INVALID_RESONANCE = 109


@dataclass(frozen=True)
class Anomaly:
    kind: AnomalyKind
    message: str = ""

    @property
    def code(self) -> int:
        return self.kind.value


class AnomalyError(Exception):
    """Raised inside an operation to abort it; never escapes the operation."""

    def __init__(self, kind: AnomalyKind, message: str = ""):
        super().__init__(f"{kind.name} ({kind.value}): {message}")
        self.anomaly = Anomaly(kind, message)


def is_anomaly(result) -> bool:
    """Check whether an operation result is a failure value."""
    return isinstance(result, Anomaly)
