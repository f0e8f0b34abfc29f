"""
Mutation profiles.
Each create/update variant differs only in the provenance tag, the fixed
stability/complexity/pattern it writes, and what it does to the flux flag.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class MutationProfile:
    name: str
    origin_tag: str
    stability: int
    complexity: int
    pattern: str
    flux: Optional[bool]  # None leaves the flux indicator as it was

    def __post_init__(self):
        if not 0 <= self.stability <= 1000:
            raise ValueError(f"stability out of range for profile {self.name}: {self.stability}")
        if not 1 <= self.complexity <= 100:
            raise ValueError(f"complexity out of range for profile {self.name}: {self.complexity}")


CREATE_PROFILES: Dict[str, MutationProfile] = {
    "standard": MutationProfile("standard", "genesis", 100, 1, "standard", True),
    "fortified": MutationProfile("fortified", "fortified-genesis", 250, 3, "fortified", True),
    "harmonic": MutationProfile("harmonic", "harmonic-genesis", 175, 2, "harmonic", False),
}

UPDATE_PROFILES: Dict[str, MutationProfile] = {
    "standard": MutationProfile("standard", "refinement", 150, 2, "refined", False),
    "fortified": MutationProfile("fortified", "fortified-refinement", 300, 4, "fortified", True),
    "recalibrated": MutationProfile("recalibrated", "recalibration", 200, 2, "recalibrated", False),
}

SECONDARY_CREATE_PROFILE = MutationProfile("secondary", "secondary-genesis", 100, 1, "secondary", False)


def get_create_profile(name: str) -> MutationProfile:
    try:
        return CREATE_PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown create profile: {name} (expected one of {sorted(CREATE_PROFILES)})")


def get_update_profile(name: str) -> MutationProfile:
    try:
        return UPDATE_PROFILES[name]
    except KeyError:
        raise KeyError(f"Unknown update profile: {name} (expected one of {sorted(UPDATE_PROFILES)})")
