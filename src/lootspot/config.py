"""
lootspot/config.py

Configuration constants and data classes for lootspot.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import logging
import os
import re


logger = logging.getLogger("lootspot.config")


# Category every record falls back to
DEFAULT_CATEGORY = "default"

# Category names are single words (same charset the admin commands accept)
CATEGORY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.+\-]+$")

# Storage files
DEFAULT_DATA_DIR = Path.home() / ".lootspot"
STORAGE_FILENAME = "lootspot.json"
COMPLETIONS_FILENAME = "completions.json"

# Location key string separator: "<world>|<x>|<y>|<z>"
LOCATION_KEY_SEPARATOR = "|"

# Proximity scan settings
SCAN_PARAMS = {
    "radius_blocks": 16,            # actors farther than this are ignored
    "interval_seconds": 1.0,        # once per second (every 20 server ticks)
}

# Clear-all must be repeated within this window to take effect
CONFIRMATION_TIMEOUT_SECONDS = 30.0

# Placeholder substituted in category completion commands
PLAYER_PLACEHOLDER = "{player}"


@dataclass
class LootSpotConfig:
    """Runtime configuration for a reward store and its service."""
    data_dir: Path = field(default_factory=lambda: DEFAULT_DATA_DIR)
    storage_filename: str = STORAGE_FILENAME
    completions_filename: str = COMPLETIONS_FILENAME
    confirmation_timeout: float = CONFIRMATION_TIMEOUT_SECONDS
    scan_radius: int = SCAN_PARAMS["radius_blocks"]
    scan_interval: float = SCAN_PARAMS["interval_seconds"]

    @property
    def storage_path(self) -> Path:
        """Path of the reward table file."""
        return self.data_dir / self.storage_filename

    @property
    def completions_path(self) -> Path:
        """Path of the category completion commands file."""
        return self.data_dir / self.completions_filename

    def to_dict(self) -> dict:
        return {
            'data_dir': str(self.data_dir),
            'storage_path': str(self.storage_path),
            'completions_path': str(self.completions_path),
            'confirmation_timeout': self.confirmation_timeout,
            'scan_radius': self.scan_radius,
            'scan_interval': self.scan_interval,
        }


def _env_number(name: str, default, cast):
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        number = cast(value)
    except ValueError:
        logger.warning(f"Invalid {name}={value!r}, using default {default}")
        return default
    if number < 0:
        logger.warning(f"Negative {name}={value!r}, using default {default}")
        return default
    return number


def load_config(data_dir: Optional[Path] = None) -> LootSpotConfig:
    """
    Build the configuration from defaults and environment.

    Priority (highest to lowest):
    1. Explicit data_dir argument
    2. Environment variables (LOOTSPOT_DATA_DIR, LOOTSPOT_STORAGE_FILE,
       LOOTSPOT_CONFIRM_TIMEOUT, LOOTSPOT_SCAN_RADIUS, LOOTSPOT_SCAN_INTERVAL)
    3. Module defaults

    Returns:
        LootSpotConfig
    """
    if data_dir is None:
        env_dir = os.environ.get("LOOTSPOT_DATA_DIR")
        data_dir = Path(env_dir).expanduser() if env_dir else DEFAULT_DATA_DIR

    return LootSpotConfig(
        data_dir=Path(data_dir),
        storage_filename=os.environ.get("LOOTSPOT_STORAGE_FILE") or STORAGE_FILENAME,
        confirmation_timeout=_env_number(
            "LOOTSPOT_CONFIRM_TIMEOUT", CONFIRMATION_TIMEOUT_SECONDS, float
        ),
        scan_radius=_env_number(
            "LOOTSPOT_SCAN_RADIUS", SCAN_PARAMS["radius_blocks"], int
        ),
        scan_interval=_env_number(
            "LOOTSPOT_SCAN_INTERVAL", SCAN_PARAMS["interval_seconds"], float
        ),
    )


def is_valid_category_name(name: str) -> bool:
    """Check a category name against the single-word pattern."""
    return bool(name) and CATEGORY_NAME_PATTERN.fullmatch(name) is not None
