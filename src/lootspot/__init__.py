"""
lootspot - One-time rewards placed at world locations

Admins place a reward at a block; every player can claim it exactly once.
The reward table is kept in memory, saved to a JSON file on every change
and reloaded tolerantly (legacy layouts, corrupt entries, worlds that are
not loaded yet).

Usage:
    from lootspot import RewardStore, RewardService, load_config

    config = load_config()
    store = RewardStore(config.storage_path, resolver=server.get_world)
    service = RewardService(store, permissions=server.permissions)

    # Admin command
    service.enter_setup_mode(admin_id, category="gems")

    # Interaction event
    outcome = service.handle_interaction(actor_id, (world, x, y, z), held_item)
    if outcome.passthrough:
        ...  # let the host handle the click
    elif outcome.ok and outcome.payload is not None:
        server.give(actor_id, outcome.payload)

    # Disconnect event
    service.on_disconnect(actor_id)

Proximity hints:
    from lootspot import ProximityScanner

    scanner = ProximityScanner(store, server.actor_positions, server.show_hint)
    scanner.start()
"""

from .config import (
    DEFAULT_CATEGORY,
    LootSpotConfig,
    load_config,
)
from .data import (
    LocationKey,
    LocationKeyError,
    RewardRecord,
    PayloadCodec,
    PayloadCodecError,
    JsonPayloadCodec,
    PersistenceCodec,
    StoreLayout,
    LoadReport,
    RewardStore,
)
from .service import (
    ActorMode,
    ActorModeTracker,
    OutcomeCode,
    RewardAction,
    FeedbackCategory,
    Outcome,
    Permissions,
    PermissionProvider,
    DefaultPermissionProvider,
    NodePermissionProvider,
    select_permission_provider,
    CompletionCommands,
    ConfirmationTracker,
    RewardService,
)
from .scanner import ProximityScanner, ScannerConfig

__version__ = "1.0.0"

__all__ = [
    # Config
    "DEFAULT_CATEGORY",
    "LootSpotConfig",
    "load_config",
    # Data
    "LocationKey",
    "LocationKeyError",
    "RewardRecord",
    "PayloadCodec",
    "PayloadCodecError",
    "JsonPayloadCodec",
    "PersistenceCodec",
    "StoreLayout",
    "LoadReport",
    "RewardStore",
    # Service
    "ActorMode",
    "ActorModeTracker",
    "OutcomeCode",
    "RewardAction",
    "FeedbackCategory",
    "Outcome",
    "Permissions",
    "PermissionProvider",
    "DefaultPermissionProvider",
    "NodePermissionProvider",
    "select_permission_provider",
    "CompletionCommands",
    "ConfirmationTracker",
    "RewardService",
    # Scanner
    "ProximityScanner",
    "ScannerConfig",
]
