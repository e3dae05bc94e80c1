"""Shared constants for bamstack runtime defaults and thresholds.

This module is the single source of truth for default values that are consumed
across configuration loading, the pysam-backed sources, and index caching.
"""

from __future__ import annotations

from pathlib import Path

# Project root is 3 levels up from this file: src/bamstack/constants.py -> bamstack/
_PROJECT_ROOT = Path(__file__).parent.parent.parent
DEFAULT_CACHE_DIR = _PROJECT_ROOT / ".cache"

# Alignment source defaults
DEFAULT_MAX_READS = 10_000
DEFAULT_MIN_MAPQ = 0
DEFAULT_CONTAINED_ONLY = False

# Timeout for a single pysam fetch run in a worker thread (seconds)
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0

# Index cache behavior
DEFAULT_CACHE_TTL_SECONDS = 86_400  # 24 hours
CACHE_SESSION_ID_LENGTH = 8
REMOTE_FILE_SCHEMES = ("http://", "https://")
INDEX_DOWNLOAD_TIMEOUT_SECONDS = 60.0

DEFAULT_LOG_LEVEL = "WARNING"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Largest visible range a track will accept
MAX_REGION_SIZE = 1_000_000  # 1 Mbp

# Reserved symbol for a base whose identity is unknown; never a mismatch
UNKNOWN_BASE = "N"
