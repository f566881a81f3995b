"""
lootspot/data/store.py

In-memory reward table keyed by location, persisted through
PersistenceCodec on every mutation.

Concurrency: a single re-entrant lock guards the table, the category set
and file writes. Mutations write the file before returning, so callers
observe the on-disk state after the call. The in-memory table stays
authoritative when a write fails.

Usage:
    store = RewardStore(Path("rewards.json"))
    store.add(RewardRecord(LocationKey("overworld", 1, 2, 3), {"item": "diamond"}))

    with store.locked():
        record = store.get(location)
        record.claim("player-uuid")
        store.mark_dirty()
"""

import shutil
import time
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

from ..config import DEFAULT_CATEGORY, is_valid_category_name
from .codec import (
    EntryResult,
    LoadReport,
    PayloadCodecError,
    PersistenceCodec,
    StoreLayout,
    WorldResolver,
)
from .record import LocationKey, RewardRecord

logger = logging.getLogger("lootspot.data.store")

LocationLike = Union[LocationKey, Tuple[str, int, int, int]]


def as_location(location: LocationLike) -> LocationKey:
    if isinstance(location, LocationKey):
        return location
    world, x, y, z = location
    return LocationKey(world, int(x), int(y), int(z))


class RewardStore:
    """
    Reward table with save-on-mutation semantics.

    The store never holds two records for one location: add() overwrites.
    Callers that must not overwrite check get() first while holding
    locked().
    """

    def __init__(
        self,
        path: Path,
        codec: Optional[PersistenceCodec] = None,
        resolver: Optional[WorldResolver] = None,
        autoload: bool = True,
    ):
        """
        Initialize the store.

        Args:
            path: JSON file holding the table
            codec: Persistence codec (JSON payloads by default)
            resolver: World resolver used to decode and encode payloads
            autoload: Load the file immediately
        """
        self.path = Path(path)
        self.codec = codec or PersistenceCodec()
        self._resolver = resolver
        self._lock = threading.RLock()

        self._records: Dict[LocationKey, RewardRecord] = {}
        self._categories: Set[str] = {DEFAULT_CATEGORY}
        # Entries skipped for lack of a world context, kept for write-back
        self._pending: Dict[str, EntryResult] = {}

        self._last_report: Optional[LoadReport] = None
        self._last_save = 0.0
        self._save_count = 0
        self._save_failures = 0

        if autoload:
            self._load()

    # ------------------------------------------------------------------ locking

    @contextmanager
    def locked(self) -> Iterator['RewardStore']:
        """Hold the table lock across a read-modify-write sequence."""
        with self._lock:
            yield self

    def records(self) -> List[RewardRecord]:
        """Live records. Only mutate them while holding locked()."""
        with self._lock:
            return list(self._records.values())

    # ------------------------------------------------------------------ resolver

    @property
    def resolver(self) -> Optional[WorldResolver]:
        return self._resolver

    def set_world_resolver(self, resolver: Optional[WorldResolver]) -> None:
        """Set the world resolver used by later loads and saves."""
        self._resolver = resolver

    # ------------------------------------------------------------------ table

    def add(self, record: RewardRecord) -> None:
        """Insert or overwrite the record at record.location and save."""
        with self._lock:
            if record.category not in self._categories:
                logger.info(f"Registering category {record.category} from new record")
                self._categories.add(record.category)
            self._records[record.location] = record
            self._pending.pop(record.key, None)
            self.save()

    def remove(self, location: LocationLike) -> Optional[RewardRecord]:
        """Remove and return the record at location. Saves only if found."""
        key = as_location(location)
        with self._lock:
            removed = self._records.pop(key, None)
            if removed is not None:
                self.save()
            return removed

    def get(self, location: LocationLike) -> Optional[RewardRecord]:
        """Live record at location, or None. No side effects."""
        key = as_location(location)
        with self._lock:
            return self._records.get(key)

    def contains(self, location: LocationLike) -> bool:
        return self.get(location) is not None

    def list_all(self) -> Dict[LocationKey, RewardRecord]:
        """Snapshot of the table. Records are copies."""
        with self._lock:
            return {loc: record.copy() for loc, record in self._records.items()}

    def count(self) -> int:
        return len(self._records)

    def clear_all(self) -> int:
        """Remove every record and save once. Returns the number removed."""
        with self._lock:
            removed = len(self._records)
            self._records.clear()
            self._pending.clear()
            self.save()
        logger.info(f"Cleared all rewards: {removed} entries removed")
        return removed

    def mark_dirty(self) -> bool:
        """Write the table after records were mutated in place."""
        return self.save()

    # ------------------------------------------------------------------ categories

    def create_category(self, name: str) -> bool:
        """
        Register a category.

        Returns:
            True if created, False if it already existed

        Raises:
            ValueError: if the name is not a single word
        """
        if not is_valid_category_name(name):
            raise ValueError(f"Invalid category name: {name!r}")
        with self._lock:
            if name in self._categories:
                return False
            self._categories.add(name)
            self.save()
        logger.info(f"Created category {name}")
        return True

    def has_category(self, name: str) -> bool:
        with self._lock:
            return name in self._categories

    def list_categories(self) -> Set[str]:
        with self._lock:
            return set(self._categories)

    def list_by_category(self, category: str) -> List[RewardRecord]:
        """Snapshot copies of the records in one category, sorted by key."""
        with self._lock:
            matches = [r.copy() for r in self._records.values() if r.category == category]
        return sorted(matches, key=lambda r: r.key)

    # ------------------------------------------------------------------ persistence

    def save(self) -> bool:
        """
        Write the whole table to disk.

        Returns:
            True if written. Failures are logged; memory is unchanged.
        """
        with self._lock:
            try:
                document = self.codec.encode_document(
                    self._records.values(),
                    self._categories,
                    self._resolver,
                    self._pending.values(),
                )
                self.codec.write_file(self.path, document)
            except (OSError, KeyError, TypeError, ValueError, PayloadCodecError) as e:
                self._save_failures += 1
                logger.error(f"Failed to save reward file {self.path}: {e}")
                return False
            self._save_count += 1
            self._last_save = time.time()
            return True

    def reload(self, resolver: Optional[WorldResolver] = None) -> LoadReport:
        """
        Discard the table and load it again from disk.

        Args:
            resolver: World resolver; replaces the current one when given

        Returns:
            LoadReport describing what was loaded, skipped and dropped
        """
        if resolver is not None:
            self._resolver = resolver
        return self._load()

    def _load(self) -> LoadReport:
        with self._lock:
            report = self.codec.read_file(self.path, self._resolver)
            self._records = dict(report.records)
            self._categories = set(report.categories) | {DEFAULT_CATEGORY}
            self._pending = {entry.key: entry for entry in report.skipped}
            self._last_report = report

            if report.is_total_failure and report.layout == StoreLayout.INVALID:
                self._quarantine()

        if report.needs_migration:
            logger.info(
                f"Reward file uses legacy {report.layout.value} layout; "
                f"it will be rewritten nested by category on next save"
            )
        if report.skipped:
            logger.warning(
                f"Skipped {len(report.skipped)} reward entries until a world "
                f"context is available"
            )
        logger.info(f"Loaded {report.loaded_count} reward entries")
        return report

    def _quarantine(self) -> None:
        """Copy an unusable file aside so the next save cannot clobber it."""
        if not self.path.exists():
            return
        backup = self.path.with_name(f"{self.path.name}.corrupt")
        try:
            shutil.copy2(self.path, backup)
            logger.error(f"Unusable reward file copied to {backup}")
        except OSError as e:
            logger.error(f"Could not back up unusable reward file: {e}")

    # ------------------------------------------------------------------ stats

    @property
    def last_report(self) -> Optional[LoadReport]:
        return self._last_report

    def pending_count(self) -> int:
        """Entries waiting for a world context."""
        with self._lock:
            return len(self._pending)

    def get_stats(self) -> dict:
        """Get store statistics."""
        with self._lock:
            claims = sum(len(r.claimants) for r in self._records.values())
            return {
                "path": str(self.path),
                "entries": len(self._records),
                "categories": len(self._categories),
                "claims": claims,
                "pending": len(self._pending),
                "saves": self._save_count,
                "save_failures": self._save_failures,
                "last_save": self._last_save,
            }
