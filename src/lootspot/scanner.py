"""
lootspot.scanner - Proximity scan for unclaimed rewards

Periodically matches connected actors against the reward table and reports
rewards an actor is standing near but has not claimed yet. The host uses
the callback to draw its hint effect.

Usage:
    from lootspot.scanner import ProximityScanner

    scanner = ProximityScanner(store, host.actor_positions, host.show_hint)
    scanner.start()

    # On join
    scanner.scan_for_actor(actor, position)
"""

from typing import Callable, Dict, List, Optional
import threading
import logging

from .config import LootSpotConfig, SCAN_PARAMS
from .data.record import LocationKey, RewardRecord
from .data.store import RewardStore

logger = logging.getLogger("lootspot.scanner")

ActorPositions = Callable[[], Dict[str, LocationKey]]
NearbyCallback = Callable[[RewardRecord, List[str]], None]


class ScannerConfig:
    """Configuration for the proximity scan."""

    def __init__(
        self,
        radius: int = SCAN_PARAMS["radius_blocks"],
        interval_seconds: float = SCAN_PARAMS["interval_seconds"],
    ):
        self.radius = radius
        self.interval_seconds = interval_seconds

    @classmethod
    def from_config(cls, config: LootSpotConfig) -> 'ScannerConfig':
        return cls(radius=config.scan_radius, interval_seconds=config.scan_interval)

    @property
    def radius_squared(self) -> int:
        return self.radius * self.radius


class ProximityScanner:
    """
    Reports unclaimed rewards near connected actors.

    Each scan works on a list_all() snapshot. Records removed after the
    snapshot may still be reported once.
    """

    def __init__(
        self,
        store: RewardStore,
        actor_positions: ActorPositions,
        on_nearby: NearbyCallback,
        config: Optional[ScannerConfig] = None,
    ):
        """
        Initialize the scanner.

        Args:
            store: Reward table to scan
            actor_positions: Returns {actor: LocationKey} for connected actors
            on_nearby: Called with (record, actors) for each hit
            config: Radius and interval
        """
        self._store = store
        self._actor_positions = actor_positions
        self._on_nearby = on_nearby
        self._config = config or ScannerConfig()

        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._scan_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def scan_count(self) -> int:
        return self._scan_count

    def start(self):
        """Start the background scan."""
        if self._running:
            return
        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._scan_loop,
            daemon=True,
            name="LootSpot-Scanner"
        )
        self._thread.start()
        logger.info(f"Proximity scanner started (radius {self._config.radius})")

    def stop(self):
        """Stop the background scan."""
        self._running = False
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
            self._thread = None
        logger.info("Proximity scanner stopped")

    def _scan_loop(self):
        while self._running:
            try:
                self.scan_once()
            except Exception as e:
                logger.error(f"Proximity scan error: {e}")
            self._stop_event.wait(self._config.interval_seconds)

    def scan_once(self) -> int:
        """
        Scan all connected actors once.

        Returns:
            Number of callbacks made
        """
        positions = dict(self._actor_positions())
        self._scan_count += 1
        if not positions:
            logger.debug("Proximity scan skipped: no connected actors")
            return 0

        hits = 0
        for record in self._store.list_all().values():
            actors = self._nearby_unclaimed(record, positions)
            if actors and self._notify(record, actors):
                hits += 1
        logger.debug(f"Proximity scan #{self._scan_count}: {hits} rewards near actors")
        return hits

    def scan_for_actor(self, actor: str, position: LocationKey) -> int:
        """Scan for one actor (join event). Returns the number of callbacks."""
        hits = 0
        for record in self._store.list_all().values():
            if self._nearby_unclaimed(record, {actor: position}) and self._notify(record, [actor]):
                hits += 1
        return hits

    def _nearby_unclaimed(self, record: RewardRecord, positions: Dict[str, LocationKey]) -> List[str]:
        limit = self._config.radius_squared
        return sorted(
            actor for actor, pos in positions.items()
            if pos.world == record.world
            and not record.has_claimed(actor)
            and record.location.squared_distance(pos) <= limit
        )

    def _notify(self, record: RewardRecord, actors: List[str]) -> bool:
        try:
            self._on_nearby(record, actors)
        except Exception as e:
            logger.warning(f"Proximity callback failed for {record.key}: {e}")
            return False
        return True
