"""
lootspot/data/record.py

Location keys and reward records.

A reward record lives at exactly one LocationKey. The key never changes
once the record is created; moving a reward means removing it and adding a
new record at the new location.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, NamedTuple, Optional, Set

from ..config import DEFAULT_CATEGORY, LOCATION_KEY_SEPARATOR


class LocationKeyError(ValueError):
    """Raised when a location key string cannot be parsed."""


class LocationKey(NamedTuple):
    """Block coordinate inside a world: (world, x, y, z)."""
    world: str
    x: int
    y: int
    z: int

    def to_string(self) -> str:
        """Encode as "<world>|<x>|<y>|<z>"."""
        sep = LOCATION_KEY_SEPARATOR
        return f"{self.world}{sep}{self.x}{sep}{self.y}{sep}{self.z}"

    @classmethod
    def from_string(cls, value: str) -> 'LocationKey':
        """
        Parse a "<world>|<x>|<y>|<z>" string.

        The world part may itself contain the separator; the coordinates are
        always the last three fields.

        Raises:
            LocationKeyError: if the string is not a valid key
        """
        parts = value.rsplit(LOCATION_KEY_SEPARATOR, 3)
        if len(parts) != 4 or not parts[0]:
            raise LocationKeyError(f"Invalid location key: {value!r}")
        try:
            return cls(parts[0], int(parts[1]), int(parts[2]), int(parts[3]))
        except ValueError:
            raise LocationKeyError(f"Invalid coordinates in location key: {value!r}")

    def squared_distance(self, other: 'LocationKey') -> int:
        """Squared block distance, ignoring the world."""
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return dx * dx + dy * dy + dz * dz

    def __str__(self) -> str:
        return self.to_string()


@dataclass
class RewardRecord:
    """
    A one-time reward placed at a location.

    payload is opaque to the store; only the configured PayloadCodec knows
    how to turn it into text and back. claimants holds the ids of every
    actor that already collected the reward.
    """
    location: LocationKey
    payload: Any
    claimants: Set[str] = field(default_factory=set)
    category: str = DEFAULT_CATEGORY

    def __post_init__(self):
        if not isinstance(self.location, LocationKey):
            self.location = LocationKey(*self.location)
        if not isinstance(self.claimants, set):
            self.claimants = set(self.claimants)

    @property
    def key(self) -> str:
        return self.location.to_string()

    @property
    def world(self) -> str:
        return self.location.world

    @property
    def is_empty(self) -> bool:
        return self.payload is None

    def has_claimed(self, actor: str) -> bool:
        return actor in self.claimants

    def claim(self, actor: str) -> bool:
        """Record a claim. Returns False if the actor had already claimed."""
        if actor in self.claimants:
            return False
        self.claimants.add(actor)
        return True

    def reset_claim(self, actor: str) -> bool:
        """Forget an actor's claim. Returns True if one was removed."""
        if actor in self.claimants:
            self.claimants.discard(actor)
            return True
        return False

    def copy(self) -> 'RewardRecord':
        """Copy with its own claimant set (payload is shared)."""
        return RewardRecord(
            location=self.location,
            payload=self.payload,
            claimants=set(self.claimants),
            category=self.category,
        )

    def to_summary(self) -> dict:
        return {
            'location': self.key,
            'category': self.category,
            'claimed_count': len(self.claimants),
            'empty': self.is_empty,
        }


def make_record(
    world: str,
    x: int,
    y: int,
    z: int,
    payload: Any,
    claimants: Optional[Iterable[str]] = None,
    category: str = DEFAULT_CATEGORY,
) -> RewardRecord:
    """Convenience constructor from raw coordinates."""
    return RewardRecord(
        location=LocationKey(world, int(x), int(y), int(z)),
        payload=payload,
        claimants=set(claimants or ()),
        category=category,
    )
