"""Environment-level configuration for the enigma shell.

Deployment concerns (database location, log level, pacing delays) live here
so the progression and puzzle modules stay free of environment lookups.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path(".otherside") / "progress.db"


@dataclass(frozen=True)
class Settings:
    """Environment / deployment settings."""

    db_path: Path = DEFAULT_DB_PATH
    log_level: str = "WARNING"
    settle_delay: float = 1.0
    reset_delay: float = 2.0
    final_glitch_delay: float = 90.0
    glitch_duration: float = 1.5

    @classmethod
    def from_env(cls) -> Settings:
        """Build settings from environment variables."""
        defaults = cls()
        db_path = os.getenv("OTHERSIDE_DB")
        return cls(
            db_path=Path(db_path) if db_path else defaults.db_path,
            log_level=(os.getenv("OTHERSIDE_LOG_LEVEL") or defaults.log_level).upper(),
            settle_delay=_env_seconds("OTHERSIDE_SETTLE_DELAY", defaults.settle_delay),
            reset_delay=_env_seconds("OTHERSIDE_RESET_DELAY", defaults.reset_delay),
            final_glitch_delay=_env_seconds("OTHERSIDE_FINAL_GLITCH_DELAY", defaults.final_glitch_delay),
            glitch_duration=_env_seconds("OTHERSIDE_GLITCH_DURATION", defaults.glitch_duration),
        )


def _env_seconds(name: str, default: float) -> float:
    """Read a non-negative number of seconds, falling back to the default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%r, using %s", name, raw, default)
        return default
    return value


def get_settings() -> Settings:
    """Convenience accessor for environment settings."""
    return Settings.from_env()
