"""
lootspot.service.modes - Per-actor admin mode tracking

An actor is in at most one of SETUP or REMOVE. Entering one clears the
other. Disconnecting always returns the actor to NONE, whether or not it
was ever tracked.

Transitions:
    NONE -> SETUP, NONE -> REMOVE
    SETUP -> REMOVE, REMOVE -> SETUP
    SETUP/REMOVE -> NONE (exit, auto-exit, disconnect)
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, Optional
import logging
import threading
import time

from ..config import DEFAULT_CATEGORY

logger = logging.getLogger("lootspot.service.modes")


class ActorMode(Enum):
    """Admin interaction mode of an actor."""
    NONE = auto()
    SETUP = auto()      # next interaction places a reward
    REMOVE = auto()     # next interaction removes a reward

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class ModeState:
    """Mode an actor is in, plus the category new rewards go to."""
    mode: ActorMode
    category: str = DEFAULT_CATEGORY
    since: float = field(default_factory=time.time)


class ActorModeTracker:
    """
    Thread-safe map of actor -> ModeState.

    Actors in NONE are not stored, so the map only holds actors that are
    mid-operation.
    """

    def __init__(self):
        self._states: Dict[str, ModeState] = {}
        self._lock = threading.Lock()

    def enter_setup(self, actor: str, category: str = DEFAULT_CATEGORY) -> ActorMode:
        """Put actor in SETUP mode. Returns the mode it was in."""
        with self._lock:
            previous = self._mode_locked(actor)
            self._states[actor] = ModeState(ActorMode.SETUP, category)
        logger.info(f"Actor {actor} entered setup mode (category {category})")
        return previous

    def enter_remove(self, actor: str) -> ActorMode:
        """Put actor in REMOVE mode. Returns the mode it was in."""
        with self._lock:
            previous = self._mode_locked(actor)
            self._states[actor] = ModeState(ActorMode.REMOVE)
        logger.info(f"Actor {actor} entered remove mode")
        return previous

    def exit(self, actor: str) -> ActorMode:
        """Return actor to NONE. Returns the mode it left."""
        with self._lock:
            state = self._states.pop(actor, None)
        return state.mode if state else ActorMode.NONE

    def exit_if(self, actor: str, mode: ActorMode) -> bool:
        """Return actor to NONE only if it is still in mode."""
        with self._lock:
            state = self._states.get(actor)
            if state is None or state.mode != mode:
                return False
            del self._states[actor]
            return True

    def disconnect(self, actor: str) -> None:
        """Forget actor entirely. Safe for actors never tracked."""
        with self._lock:
            state = self._states.pop(actor, None)
        if state is not None:
            logger.debug(f"Cleared {state.mode} mode for disconnected actor {actor}")

    def is_setup(self, actor: str) -> bool:
        return self.mode_of(actor) == ActorMode.SETUP

    def is_remove(self, actor: str) -> bool:
        return self.mode_of(actor) == ActorMode.REMOVE

    def mode_of(self, actor: str) -> ActorMode:
        with self._lock:
            return self._mode_locked(actor)

    def state_of(self, actor: str) -> Optional[ModeState]:
        with self._lock:
            return self._states.get(actor)

    def active(self) -> Dict[str, ModeState]:
        """Snapshot of actors currently in a mode."""
        with self._lock:
            return dict(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def _mode_locked(self, actor: str) -> ActorMode:
        state = self._states.get(actor)
        return state.mode if state else ActorMode.NONE
