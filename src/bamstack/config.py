"""Configuration for bamstack, loaded from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

from .constants import (
    DEFAULT_CACHE_DIR,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_CONTAINED_ONLY,
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_READS,
    DEFAULT_MIN_MAPQ,
    VALID_LOG_LEVELS,
)


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() == "true"


@dataclass
class BamstackConfig:
    """Runtime configuration loaded from environment variables."""

    # Data files
    reference: str | None = None
    alignments: str | None = None

    # Alignment source settings
    max_reads: int = DEFAULT_MAX_READS
    min_mapq: int = DEFAULT_MIN_MAPQ
    contained_only: bool = DEFAULT_CONTAINED_ONLY
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS

    # Cache settings
    cache_dir: str = ""  # Defaults to <project>/.cache if empty
    cache_ttl: int = DEFAULT_CACHE_TTL_SECONDS

    # Security settings
    allowed_directories: list[str] | None = None
    allow_remote_files: bool = False

    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        """Validate config values and set defaults."""
        if not self.cache_dir:
            self.cache_dir = str(DEFAULT_CACHE_DIR)

        if self.max_reads < 1:
            raise ValueError(f"max_reads must be at least 1, got {self.max_reads}")

        if not 0 <= self.min_mapq <= 255:
            raise ValueError(f"min_mapq must be between 0 and 255, got {self.min_mapq}")

        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be positive, got {self.fetch_timeout}")

        if self.cache_ttl < 0:
            raise ValueError(f"cache_ttl must be non-negative, got {self.cache_ttl}")

        self.log_level = self.log_level.upper()
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{self.log_level}'"
            )

    @classmethod
    def from_env(cls) -> "BamstackConfig":
        """Create config from environment variables."""
        env = os.environ

        cache_dir = env.get("BAMSTACK_CACHE_DIR") or str(DEFAULT_CACHE_DIR)
        Path(cache_dir).mkdir(parents=True, exist_ok=True)

        return cls(
            reference=env.get("BAMSTACK_REFERENCE"),
            alignments=env.get("BAMSTACK_ALIGNMENTS"),
            max_reads=int(env.get("BAMSTACK_MAX_READS", str(DEFAULT_MAX_READS))),
            min_mapq=int(env.get("BAMSTACK_MIN_MAPQ", str(DEFAULT_MIN_MAPQ))),
            contained_only=_env_flag(env.get("BAMSTACK_CONTAINED_ONLY"), DEFAULT_CONTAINED_ONLY),
            fetch_timeout=float(
                env.get("BAMSTACK_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT_SECONDS))
            ),
            cache_dir=cache_dir,
            cache_ttl=int(env.get("BAMSTACK_CACHE_TTL", str(DEFAULT_CACHE_TTL_SECONDS))),
            allowed_directories=[
                d.strip()
                for d in env.get("BAMSTACK_ALLOWED_DIRECTORIES", "").split(",")
                if d.strip()
            ]
            or None,
            allow_remote_files=_env_flag(env.get("BAMSTACK_ALLOW_REMOTE_FILES"), False),
            log_level=env.get("BAMSTACK_LOG_LEVEL", DEFAULT_LOG_LEVEL),
        )
