"""
lootspot.service.permissions - Permission capability

The service only needs one capability: check_permission(actor, node).
A DefaultPermissionProvider is always available. A richer node-based
provider (or any host object exposing check_permission) can be plugged in
at startup through select_permission_provider().

Claim permission for a category is checked most specific first:
    lootspot.claim.category.<category>
    lootspot.claim.category.*
    lootspot.claim
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Optional, Set
import logging

logger = logging.getLogger("lootspot.service.permissions")


class Permissions:
    """Permission node constants."""
    BASE = "lootspot"
    ADMIN = "lootspot.admin"

    COMMAND_SET = "lootspot.command.set"
    COMMAND_REMOVE = "lootspot.command.remove"
    COMMAND_CLEARALL = "lootspot.command.clearall"

    CLAIM = "lootspot.claim"
    CLAIM_CATEGORY_PREFIX = "lootspot.claim.category"

    COMMAND_PREFIX = "lootspot.command."

    @classmethod
    def claim_category(cls, category: str) -> str:
        return f"{cls.CLAIM_CATEGORY_PREFIX}.{category}"

    @classmethod
    def is_claim_node(cls, node: str) -> bool:
        return node == cls.CLAIM or node.startswith(cls.CLAIM + ".")


class PermissionProvider(ABC):
    """Capability interface for permission checks."""

    name = "permissions"

    @abstractmethod
    def check_permission(self, actor: str, node: str) -> bool:
        """Check whether actor holds a permission node."""
        pass

    def can_claim(self, actor: str, category: str) -> bool:
        """Check claim permission for a category (specific, wildcard, base)."""
        for node in (
            Permissions.claim_category(category),
            f"{Permissions.CLAIM_CATEGORY_PREFIX}.*",
            Permissions.CLAIM,
        ):
            if self.check_permission(actor, node):
                return True
        return False


class DefaultPermissionProvider(PermissionProvider):
    """
    Fallback used when no richer provider is available.

    With operators=None every actor is treated as an operator. With an
    operator set, operators hold every node and everybody else only holds
    claim nodes.
    """

    name = "default"

    def __init__(self, operators: Optional[Iterable[str]] = None):
        self._operators: Optional[Set[str]] = set(operators) if operators is not None else None

    def is_operator(self, actor: str) -> bool:
        return self._operators is None or actor in self._operators

    def add_operator(self, actor: str) -> None:
        if self._operators is None:
            self._operators = set()
        self._operators.add(actor)

    def check_permission(self, actor: str, node: str) -> bool:
        if self.is_operator(actor):
            return True
        return Permissions.is_claim_node(node)


class NodePermissionProvider(PermissionProvider):
    """
    Explicit per-actor permission nodes with wildcard support.

    grants maps actor -> nodes. A node ending in ".*" grants every node
    below its prefix; lootspot.admin grants every lootspot.command node.
    Actors without an entry are delegated to the fallback provider.
    """

    name = "nodes"

    def __init__(
        self,
        grants: Optional[Dict[str, Iterable[str]]] = None,
        fallback: Optional[PermissionProvider] = None,
    ):
        self._grants: Dict[str, Set[str]] = {
            actor: set(nodes) for actor, nodes in (grants or {}).items()
        }
        self._fallback = fallback or DefaultPermissionProvider(operators=())

    def grant(self, actor: str, node: str) -> None:
        self._grants.setdefault(actor, set()).add(node)

    def revoke(self, actor: str, node: str) -> bool:
        nodes = self._grants.get(actor)
        if not nodes or node not in nodes:
            return False
        nodes.discard(node)
        return True

    def check_permission(self, actor: str, node: str) -> bool:
        nodes = self._grants.get(actor)
        if nodes is None:
            return self._fallback.check_permission(actor, node)
        if node in nodes:
            return True
        if Permissions.ADMIN in nodes and node.startswith(Permissions.COMMAND_PREFIX):
            return True
        for granted in nodes:
            if granted.endswith(".*") and node.startswith(granted[:-1]):
                return True
        return False


class _CallablePermissionProvider(PermissionProvider):
    """Adapts a host object exposing check_permission(actor, node)."""

    def __init__(self, target: Any):
        self._target = target
        self.name = type(target).__name__

    def check_permission(self, actor: str, node: str) -> bool:
        return bool(self._target.check_permission(actor, node))


def select_permission_provider(
    candidate: Any = None,
    fallback: Optional[PermissionProvider] = None,
) -> PermissionProvider:
    """
    Pick the permission provider at startup.

    Probes candidate for the check_permission capability; anything that
    lacks it falls back to the default provider.

    Args:
        candidate: Richer provider offered by the host (may be None)
        fallback: Provider used when the probe fails

    Returns:
        PermissionProvider
    """
    fallback = fallback or DefaultPermissionProvider()
    if candidate is None:
        logger.info(f"No permission provider offered, using {fallback.name}")
        return fallback
    if isinstance(candidate, PermissionProvider):
        logger.info(f"Permission provider enabled: {candidate.name}")
        return candidate
    if callable(getattr(candidate, "check_permission", None)):
        provider = _CallablePermissionProvider(candidate)
        logger.info(f"Permission provider enabled: {provider.name}")
        return provider
    logger.warning(
        f"{type(candidate).__name__} has no check_permission, falling back to {fallback.name}"
    )
    return fallback
