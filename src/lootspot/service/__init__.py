"""
lootspot.service - Admin modes, permissions and reward operations.
"""

from .modes import ActorMode, ModeState, ActorModeTracker
from .outcomes import (
    OutcomeCode,
    RewardAction,
    FeedbackCategory,
    Outcome,
    mode_outcome,
)
from .permissions import (
    Permissions,
    PermissionProvider,
    DefaultPermissionProvider,
    NodePermissionProvider,
    select_permission_provider,
)
from .completion import CompletionCommands
from .confirmation import ConfirmationTracker
from .rewards import RewardService

__all__ = [
    "ActorMode",
    "ModeState",
    "ActorModeTracker",
    "OutcomeCode",
    "RewardAction",
    "FeedbackCategory",
    "Outcome",
    "mode_outcome",
    "Permissions",
    "PermissionProvider",
    "DefaultPermissionProvider",
    "NodePermissionProvider",
    "select_permission_provider",
    "CompletionCommands",
    "ConfirmationTracker",
    "RewardService",
]
