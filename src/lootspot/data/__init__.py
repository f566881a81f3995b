"""
lootspot.data - Reward records, persistence codec and the reward store.
"""

from .record import (
    LocationKey,
    LocationKeyError,
    RewardRecord,
    make_record,
)
from .codec import (
    PayloadCodec,
    PayloadCodecError,
    JsonPayloadCodec,
    PersistenceCodec,
    StoreLayout,
    EntryStatus,
    EntryResult,
    LoadReport,
    WorldResolver,
)
from .store import RewardStore, as_location

__all__ = [
    "LocationKey",
    "LocationKeyError",
    "RewardRecord",
    "make_record",
    "PayloadCodec",
    "PayloadCodecError",
    "JsonPayloadCodec",
    "PersistenceCodec",
    "StoreLayout",
    "EntryStatus",
    "EntryResult",
    "LoadReport",
    "WorldResolver",
    "RewardStore",
    "as_location",
]
