"""
lootspot.service.outcomes - Structured results of service operations

Every user-facing failure is an Outcome value, never an exception. Each
Outcome carries a fixed message key and feedback category so the host's
presentation layer can render it without string matching.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..data.record import LocationKey, RewardRecord
from .modes import ActorMode


class OutcomeCode(Enum):
    """Result codes for service operations."""
    SUCCESS = "success"
    EMPTY_PAYLOAD = "empty_payload"
    INVALID_LOCATION = "invalid_location"
    NO_REWARD_HERE = "no_reward_here"
    ALREADY_CLAIMED = "already_claimed"
    UNKNOWN_CATEGORY = "unknown_category"
    NO_PERMISSION = "no_permission"
    CATEGORY_EXISTS = "category_exists"
    INVALID_CATEGORY_NAME = "invalid_category_name"
    CONFIRMATION_REQUIRED = "confirmation_required"


class RewardAction(Enum):
    """What the service was asked to do."""
    CREATE = "create"
    REMOVE = "remove"
    CLAIM = "claim"
    MODE = "mode"
    ADMIN = "admin"


class FeedbackCategory(Enum):
    """How the host should present an outcome."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# (action, code) -> message key
MESSAGE_KEYS: Dict[Tuple[RewardAction, OutcomeCode], str] = {
    (RewardAction.CREATE, OutcomeCode.SUCCESS): "loot_created",
    (RewardAction.CREATE, OutcomeCode.EMPTY_PAYLOAD): "empty_hand_error",
    (RewardAction.CREATE, OutcomeCode.INVALID_LOCATION): "invalid_location",
    (RewardAction.CREATE, OutcomeCode.UNKNOWN_CATEGORY): "unknown_category",
    (RewardAction.CREATE, OutcomeCode.NO_PERMISSION): "no_permission",
    (RewardAction.REMOVE, OutcomeCode.SUCCESS): "loot_removed",
    (RewardAction.REMOVE, OutcomeCode.NO_REWARD_HERE): "no_loot_at_location",
    (RewardAction.REMOVE, OutcomeCode.NO_PERMISSION): "no_permission",
    (RewardAction.CLAIM, OutcomeCode.SUCCESS): "loot_claimed",
    (RewardAction.CLAIM, OutcomeCode.ALREADY_CLAIMED): "already_claimed",
    (RewardAction.CLAIM, OutcomeCode.NO_REWARD_HERE): "no_loot_here",
    (RewardAction.CLAIM, OutcomeCode.EMPTY_PAYLOAD): "empty_reward",
    (RewardAction.CLAIM, OutcomeCode.NO_PERMISSION): "no_claim_permission",
    (RewardAction.MODE, OutcomeCode.SUCCESS): "mode_changed",
    (RewardAction.MODE, OutcomeCode.UNKNOWN_CATEGORY): "unknown_category",
    (RewardAction.MODE, OutcomeCode.NO_PERMISSION): "no_permission",
    (RewardAction.ADMIN, OutcomeCode.SUCCESS): "admin_done",
    (RewardAction.ADMIN, OutcomeCode.UNKNOWN_CATEGORY): "unknown_category",
    (RewardAction.ADMIN, OutcomeCode.CATEGORY_EXISTS): "category_exists",
    (RewardAction.ADMIN, OutcomeCode.INVALID_CATEGORY_NAME): "invalid_category_name",
    (RewardAction.ADMIN, OutcomeCode.CONFIRMATION_REQUIRED): "confirmation_required",
    (RewardAction.ADMIN, OutcomeCode.NO_PERMISSION): "no_permission",
}

FEEDBACK: Dict[OutcomeCode, FeedbackCategory] = {
    OutcomeCode.SUCCESS: FeedbackCategory.SUCCESS,
    OutcomeCode.EMPTY_PAYLOAD: FeedbackCategory.ERROR,
    OutcomeCode.INVALID_LOCATION: FeedbackCategory.ERROR,
    OutcomeCode.NO_REWARD_HERE: FeedbackCategory.WARNING,
    OutcomeCode.ALREADY_CLAIMED: FeedbackCategory.WARNING,
    OutcomeCode.UNKNOWN_CATEGORY: FeedbackCategory.ERROR,
    OutcomeCode.NO_PERMISSION: FeedbackCategory.ERROR,
    OutcomeCode.CATEGORY_EXISTS: FeedbackCategory.WARNING,
    OutcomeCode.INVALID_CATEGORY_NAME: FeedbackCategory.ERROR,
    OutcomeCode.CONFIRMATION_REQUIRED: FeedbackCategory.INFO,
}

# Mode transitions get their own message keys
MODE_MESSAGE_KEYS: Dict[Tuple[ActorMode, bool], str] = {
    (ActorMode.SETUP, True): "setup_mode_enabled",
    (ActorMode.REMOVE, True): "remove_mode_enabled",
    (ActorMode.SETUP, False): "setup_mode_disabled",
    (ActorMode.REMOVE, False): "remove_mode_disabled",
    (ActorMode.NONE, False): "no_mode_active",
}


@dataclass
class Outcome:
    """
    Result of a service operation.

    Only the fields relevant to the action are set: a claim carries the
    payload to deliver, a create/remove carries the record, admin bulk
    operations carry a count, listings carry records.
    """
    code: OutcomeCode
    action: RewardAction
    actor: Optional[str] = None
    location: Optional[LocationKey] = None
    record: Optional[RewardRecord] = None
    payload: Any = None
    count: int = 0
    category: Optional[str] = None
    mode: Optional[ActorMode] = None
    records: List[RewardRecord] = field(default_factory=list)
    completed_category: Optional[str] = None
    commands: List[str] = field(default_factory=list)
    message_key: str = ""
    feedback: Optional[FeedbackCategory] = None

    def __post_init__(self):
        if not self.message_key:
            self.message_key = MESSAGE_KEYS.get((self.action, self.code), self.code.value)
        if self.feedback is None:
            self.feedback = FEEDBACK[self.code]
            if self.action == RewardAction.CLAIM and self.code == OutcomeCode.NO_REWARD_HERE:
                self.feedback = FeedbackCategory.INFO

    @property
    def ok(self) -> bool:
        return self.code == OutcomeCode.SUCCESS

    @property
    def passthrough(self) -> bool:
        """True when the host should handle the interaction normally."""
        return self.action == RewardAction.CLAIM and self.code in (
            OutcomeCode.NO_REWARD_HERE,
            OutcomeCode.NO_PERMISSION,
        )

    def to_dict(self) -> dict:
        return {
            'code': self.code.value,
            'action': self.action.value,
            'actor': self.actor,
            'location': self.location.to_string() if self.location else None,
            'count': self.count,
            'category': self.category,
            'mode': str(self.mode) if self.mode else None,
            'records': [r.to_summary() for r in self.records],
            'completed_category': self.completed_category,
            'commands': list(self.commands),
            'message_key': self.message_key,
            'feedback': self.feedback.value,
            'passthrough': self.passthrough,
        }


def mode_outcome(actor: str, mode: ActorMode, enabled: bool, category: Optional[str] = None) -> Outcome:
    """Outcome for a mode change."""
    return Outcome(
        code=OutcomeCode.SUCCESS,
        action=RewardAction.MODE,
        actor=actor,
        mode=mode,
        category=category,
        message_key=MODE_MESSAGE_KEYS[(mode, enabled)],
        feedback=FeedbackCategory.INFO if mode == ActorMode.NONE else None,
    )
