"""
lootspot.service.completion - Category completion commands

Per-category host commands run once an actor has claimed every reward in
that category. Commands may reference the actor with {player}.

Stored in a small JSON file next to the reward table:
    {"<category>": ["give {player} diamond 1", ...]}
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from ..config import PLAYER_PLACEHOLDER

logger = logging.getLogger("lootspot.service.completion")


class CompletionCommands:
    """Thread-safe, file-backed category -> command list."""

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: JSON file; None keeps the commands in memory only
        """
        self.path = Path(path) if path is not None else None
        self._commands: Dict[str, List[str]] = {}
        self._lock = threading.Lock()
        self._load()

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load completion commands: {e}")
            return
        if not isinstance(data, dict):
            logger.warning("Completion commands file is not an object, ignoring it")
            return
        for category, commands in data.items():
            if isinstance(commands, list):
                self._commands[category] = [c for c in commands if isinstance(c, str) and c]

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._commands, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save completion commands: {e}")

    def add(self, category: str, command: str) -> int:
        """Append a command. Returns its index."""
        command = command.strip().lstrip("/")
        if not command:
            raise ValueError("Completion command is empty")
        with self._lock:
            commands = self._commands.setdefault(category, [])
            commands.append(command)
            self._save()
            index = len(commands) - 1
        logger.info(f"Added completion command #{index} for category {category}: {command}")
        return index

    def remove(self, category: str, index: int) -> bool:
        """Remove the command at index. Returns False for a bad index."""
        with self._lock:
            commands = self._commands.get(category)
            if not commands or index < 0 or index >= len(commands):
                return False
            removed = commands.pop(index)
            if not commands:
                del self._commands[category]
            self._save()
        logger.info(f"Removed completion command #{index} from category {category}: {removed}")
        return True

    def list(self, category: Optional[str] = None) -> Dict[str, List[str]]:
        """Commands for one category, or for all of them."""
        with self._lock:
            if category is not None:
                return {category: list(self._commands.get(category, []))}
            return {c: list(cmds) for c, cmds in self._commands.items()}

    def render(self, category: str, player: str) -> List[str]:
        """Commands for a category with {player} substituted."""
        with self._lock:
            commands = list(self._commands.get(category, []))
        return [c.replace(PLAYER_PLACEHOLDER, player) for c in commands]
