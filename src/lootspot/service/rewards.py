"""
lootspot.service.rewards - Create, remove and claim rewards

RewardService turns a host interaction event (actor, location, held
payload) into a create, a remove or a claim, depending on the actor's
admin mode, and reports the result as an Outcome.

Usage:
    store = RewardStore(config.storage_path, resolver=resolve_world)
    service = RewardService(store)

    service.enter_setup_mode("admin-uuid")
    outcome = service.handle_interaction("admin-uuid", ("overworld", 1, 64, 3), item)
    if outcome.ok:
        ...

    outcome = service.handle_interaction("player-uuid", ("overworld", 1, 64, 3))
    if outcome.passthrough:
        ...  # nothing here, host continues normally
    elif outcome.ok:
        give(player, outcome.payload)
"""

import logging
from typing import Any, Optional, Set

from ..config import DEFAULT_CATEGORY, LootSpotConfig
from ..data.codec import PersistenceCodec, WorldResolver
from ..data.record import RewardRecord
from ..data.store import LocationLike, RewardStore, as_location
from .completion import CompletionCommands
from .confirmation import ConfirmationTracker
from .modes import ActorMode, ActorModeTracker
from .outcomes import Outcome, OutcomeCode, RewardAction, mode_outcome
from .permissions import (
    PermissionProvider,
    Permissions,
    select_permission_provider,
)

logger = logging.getLogger("lootspot.service.rewards")

CLEAR_ALL_ACTION = "clearall"


class RewardService:
    """
    Reward operations on top of a RewardStore and an ActorModeTracker.

    Every user-input failure comes back as an Outcome; nothing here raises
    for a missing reward, an empty hand or a repeated claim. Claims run
    under the store lock so a claim and a remove on the same location are
    serialized.
    """

    def __init__(
        self,
        store: RewardStore,
        modes: Optional[ActorModeTracker] = None,
        permissions: Any = None,
        completions: Optional[CompletionCommands] = None,
        confirmations: Optional[ConfirmationTracker] = None,
    ):
        """
        Args:
            store: Reward table (owned by the caller)
            modes: Admin mode tracker (a fresh one by default)
            permissions: PermissionProvider, or any object exposing
                check_permission(actor, node); probed at startup
            completions: Category completion commands (none by default)
            confirmations: Repeat-to-confirm tracker for clear-all
        """
        self.store = store
        self.modes = modes or ActorModeTracker()
        self.permissions: PermissionProvider = select_permission_provider(permissions)
        self.completions = completions
        self.confirmations = confirmations or ConfirmationTracker()

    @classmethod
    def from_config(
        cls,
        config: LootSpotConfig,
        codec: Optional[PersistenceCodec] = None,
        resolver: Optional[WorldResolver] = None,
        permissions: Any = None,
    ) -> 'RewardService':
        """Build the store, completion commands and confirmations from config."""
        store = RewardStore(config.storage_path, codec=codec, resolver=resolver)
        return cls(
            store,
            permissions=permissions,
            completions=CompletionCommands(config.completions_path),
            confirmations=ConfirmationTracker(config.confirmation_timeout),
        )

    def set_world_resolver(self, resolver: Optional[WorldResolver]) -> None:
        self.store.set_world_resolver(resolver)

    # ========================================================================
    # MODES
    # ========================================================================

    def enter_setup_mode(self, actor: str, category: str = DEFAULT_CATEGORY) -> Outcome:
        """Next interaction by actor places a reward in category."""
        if not self.permissions.check_permission(actor, Permissions.COMMAND_SET):
            return Outcome(OutcomeCode.NO_PERMISSION, RewardAction.MODE, actor=actor)
        if not self.store.has_category(category):
            return Outcome(
                OutcomeCode.UNKNOWN_CATEGORY, RewardAction.MODE,
                actor=actor, category=category,
            )
        self.modes.enter_setup(actor, category)
        return mode_outcome(actor, ActorMode.SETUP, True, category)

    def enter_remove_mode(self, actor: str) -> Outcome:
        """Next interaction by actor removes the reward there."""
        if not self.permissions.check_permission(actor, Permissions.COMMAND_REMOVE):
            return Outcome(OutcomeCode.NO_PERMISSION, RewardAction.MODE, actor=actor)
        self.modes.enter_remove(actor)
        return mode_outcome(actor, ActorMode.REMOVE, True)

    def exit_mode(self, actor: str) -> ActorMode:
        """Leave any admin mode. Returns the mode that was left."""
        left = self.modes.exit(actor)
        if left != ActorMode.NONE:
            logger.info(f"Actor {actor} left {left} mode")
        return left

    def on_disconnect(self, actor: str) -> None:
        self.modes.disconnect(actor)

    def is_setup(self, actor: str) -> bool:
        return self.modes.is_setup(actor)

    def is_remove(self, actor: str) -> bool:
        return self.modes.is_remove(actor)

    # ========================================================================
    # INTERACTION
    # ========================================================================

    def handle_interaction(
        self,
        actor: str,
        location: LocationLike,
        held_payload: Any = None,
        actor_name: Optional[str] = None,
    ) -> Outcome:
        """
        Handle an actor interacting with a location.

        Args:
            actor: Actor id
            location: (world, x, y, z) of the interacted block
            held_payload: What the actor holds (used in setup mode)
            actor_name: Display name substituted into completion commands

        Returns:
            Outcome of the create, remove or claim
        """
        location = as_location(location)
        state = self.modes.state_of(actor)
        mode = state.mode if state else ActorMode.NONE

        if mode == ActorMode.SETUP:
            return self._create(actor, location, held_payload, state.category)
        if mode == ActorMode.REMOVE:
            return self._remove(actor, location)
        return self._claim(actor, location, actor_name or actor)

    def _create(self, actor, location, held_payload, category) -> Outcome:
        if not self.permissions.check_permission(actor, Permissions.COMMAND_SET):
            return Outcome(OutcomeCode.NO_PERMISSION, RewardAction.CREATE, actor=actor, location=location)

        payload_codec = self.store.codec.payload_codec
        if held_payload is None or payload_codec.is_empty(held_payload):
            return Outcome(OutcomeCode.EMPTY_PAYLOAD, RewardAction.CREATE, actor=actor, location=location)

        if self._resolve_world(location.world) is None:
            logger.warning(f"Cannot place reward at {location}: unknown world {location.world}")
            return Outcome(OutcomeCode.INVALID_LOCATION, RewardAction.CREATE, actor=actor, location=location)

        record = RewardRecord(location=location, payload=held_payload, category=category)
        with self.store.locked():
            replaced = self.store.get(location)
            self.store.add(record)
        self.modes.exit_if(actor, ActorMode.SETUP)

        if replaced is not None:
            logger.info(f"Actor {actor} replaced reward at {location} (category {category})")
        else:
            logger.info(f"Actor {actor} created reward at {location} (category {category})")
        return Outcome(
            OutcomeCode.SUCCESS, RewardAction.CREATE,
            actor=actor, location=location, record=record, category=category,
        )

    def _remove(self, actor, location) -> Outcome:
        if not self.permissions.check_permission(actor, Permissions.COMMAND_REMOVE):
            return Outcome(OutcomeCode.NO_PERMISSION, RewardAction.REMOVE, actor=actor, location=location)

        removed = self.store.remove(location)
        if removed is None:
            # Stay in remove mode so the actor can try another block
            return Outcome(OutcomeCode.NO_REWARD_HERE, RewardAction.REMOVE, actor=actor, location=location)

        self.modes.exit_if(actor, ActorMode.REMOVE)
        logger.info(f"Actor {actor} removed reward at {location}")
        return Outcome(
            OutcomeCode.SUCCESS, RewardAction.REMOVE,
            actor=actor, location=location, record=removed, category=removed.category,
        )

    def _claim(self, actor, location, display_name) -> Outcome:
        with self.store.locked():
            record = self.store.get(location)
            if record is None:
                return Outcome(OutcomeCode.NO_REWARD_HERE, RewardAction.CLAIM, actor=actor, location=location)

            if not self.permissions.can_claim(actor, record.category):
                return Outcome(
                    OutcomeCode.NO_PERMISSION, RewardAction.CLAIM,
                    actor=actor, location=location, category=record.category,
                )

            if record.is_empty:
                return Outcome(
                    OutcomeCode.EMPTY_PAYLOAD, RewardAction.CLAIM,
                    actor=actor, location=location, category=record.category,
                )

            if not record.claim(actor):
                return Outcome(
                    OutcomeCode.ALREADY_CLAIMED, RewardAction.CLAIM,
                    actor=actor, location=location, record=record.copy(), category=record.category,
                )

            self.store.mark_dirty()
            snapshot = record.copy()
            completed = self._completes_category(actor, record.category)

        logger.info(f"Actor {actor} claimed reward at {location}")
        outcome = Outcome(
            OutcomeCode.SUCCESS, RewardAction.CLAIM,
            actor=actor, location=location, record=snapshot,
            payload=snapshot.payload, category=snapshot.category,
        )
        if completed:
            outcome.completed_category = snapshot.category
            if self.completions is not None:
                outcome.commands = self.completions.render(snapshot.category, display_name)
            logger.info(f"Actor {actor} completed category {snapshot.category}")
        return outcome

    def _completes_category(self, actor: str, category: str) -> bool:
        """True if actor has claimed every claimable record in category."""
        claimable = [
            r for r in self.store.records()
            if r.category == category and not r.is_empty
        ]
        return bool(claimable) and all(r.has_claimed(actor) for r in claimable)

    def _resolve_world(self, world: str) -> Any:
        if not world:
            return None
        resolver = self.store.resolver
        if resolver is None:
            # Without a resolver only context-free payload codecs can place rewards
            if self.store.codec.payload_codec.needs_context:
                return None
            return world
        return resolver(world)

    def is_protected(self, location: LocationLike) -> bool:
        """True if a reward sits at location (the host must not break it)."""
        return self.store.contains(location)

    # ========================================================================
    # ADMIN
    # ========================================================================

    def reset_claims(self, actor: str) -> int:
        """Forget every claim by actor. Returns the number of records changed."""
        with self.store.locked():
            count = sum(1 for r in self.store.records() if r.reset_claim(actor))
            if count > 0:
                self.store.mark_dirty()
        logger.info(f"Reset {count} claims for actor {actor}")
        return count

    def clear_all(self) -> int:
        return self.store.clear_all()

    def request_clear_all(self, requester: str) -> Outcome:
        """Clear everything once the requester repeats the request in time."""
        if not self.permissions.check_permission(requester, Permissions.COMMAND_CLEARALL):
            return Outcome(OutcomeCode.NO_PERMISSION, RewardAction.ADMIN, actor=requester)
        if not self.confirmations.confirm(requester, CLEAR_ALL_ACTION):
            return Outcome(OutcomeCode.CONFIRMATION_REQUIRED, RewardAction.ADMIN, actor=requester)
        count = self.clear_all()
        return Outcome(OutcomeCode.SUCCESS, RewardAction.ADMIN, actor=requester, count=count)

    def reload_all(self, resolver: Optional[WorldResolver] = None) -> int:
        """Reload the table from disk. Returns the number of live records."""
        report = self.store.reload(resolver)
        count = self.store.count()
        logger.info(
            f"Reloaded rewards: {count} loaded, {len(report.skipped)} pending, "
            f"{len(report.failed)} dropped"
        )
        return count

    # ========================================================================
    # CATEGORIES & LISTING
    # ========================================================================

    def create_category(self, name: str) -> Outcome:
        try:
            created = self.store.create_category(name)
        except ValueError:
            return Outcome(OutcomeCode.INVALID_CATEGORY_NAME, RewardAction.ADMIN, category=name)
        if not created:
            return Outcome(OutcomeCode.CATEGORY_EXISTS, RewardAction.ADMIN, category=name)
        return Outcome(OutcomeCode.SUCCESS, RewardAction.ADMIN, category=name)

    def list_categories(self) -> Set[str]:
        return self.store.list_categories()

    def list_entries(self, category: Optional[str] = None) -> Outcome:
        """Snapshot of the records, optionally limited to one category."""
        if category is None:
            records = sorted(self.store.list_all().values(), key=lambda r: r.key)
        elif self.store.has_category(category):
            records = self.store.list_by_category(category)
        else:
            return Outcome(OutcomeCode.UNKNOWN_CATEGORY, RewardAction.ADMIN, category=category)
        return Outcome(
            OutcomeCode.SUCCESS, RewardAction.ADMIN,
            category=category, records=records, count=len(records),
        )

    def get_stats(self) -> dict:
        stats = self.store.get_stats()
        stats["actors_in_mode"] = len(self.modes)
        stats["permissions"] = self.permissions.name
        return stats
