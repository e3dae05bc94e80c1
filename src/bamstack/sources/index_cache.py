"""Session cache for the index files of remote BAM/CRAM files.

pysam needs a local ``.bai``/``.crai`` next to a remote alignment file. The
cache downloads it once per session into its own subdirectory and reuses it
until the TTL runs out.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import time
import uuid
from pathlib import Path

import httpx

from ..constants import (
    CACHE_SESSION_ID_LENGTH,
    DEFAULT_CACHE_TTL_SECONDS,
    INDEX_DOWNLOAD_TIMEOUT_SECONDS,
)
from .validation import is_remote

logger = logging.getLogger(__name__)


def index_urls_for(alignment_path: str) -> list[str]:
    """Candidate index URLs, most common naming first."""
    if alignment_path.endswith(".cram"):
        return [alignment_path + ".crai"]
    stem = alignment_path.rsplit(".", 1)[0]
    return [alignment_path + ".bai", stem + ".bai"]


class IndexCache:
    """Per-session directory of downloaded alignment indexes.

    Args:
        cache_dir: Base directory; each session gets a subdirectory.
        ttl_seconds: Age after which a cached index is fetched again.
        session_id: Subdirectory name. A short random id when omitted.
    """

    def __init__(
        self,
        cache_dir: str,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        session_id: str | None = None,
    ):
        self.base_cache_dir = Path(cache_dir)
        self.ttl_seconds = ttl_seconds
        self.session_id = session_id or uuid.uuid4().hex[:CACHE_SESSION_ID_LENGTH]
        self.cache_dir = self.base_cache_dir / self.session_id
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def get_index_path(self, alignment_path: str) -> str | None:
        """Where the index of a remote file is kept; None for local files."""
        if not is_remote(alignment_path):
            return None
        # URL digest keeps same-named files from different hosts apart
        digest = hashlib.md5(alignment_path.encode()).hexdigest()[:8]  # noqa: S324
        suffix = ".crai" if alignment_path.endswith(".cram") else ".bai"
        return str(self.cache_dir / f"{digest}_{Path(alignment_path).name}{suffix}")

    def is_valid(self, cache_path: str) -> bool:
        """True if the cached index exists and is younger than the TTL."""
        try:
            mtime = Path(cache_path).stat().st_mtime
        except FileNotFoundError:
            return False
        return time.time() - mtime < self.ttl_seconds

    async def fetch_index(self, alignment_path: str) -> str | None:
        """Return a local index path for ``alignment_path``, downloading it if needed.

        Returns None for local files and when no candidate URL yields an index;
        pysam then falls back to its own index lookup.
        """
        index_path = self.get_index_path(alignment_path)
        if index_path is None:
            return None
        if self.is_valid(index_path):
            logger.debug("Using cached index %s", index_path)
            return index_path

        logger.info("Downloading index for %s", alignment_path)
        async with httpx.AsyncClient(
            timeout=INDEX_DOWNLOAD_TIMEOUT_SECONDS, follow_redirects=True
        ) as client:
            for url in index_urls_for(alignment_path):
                content = await self._download(client, url)
                if content is not None:
                    Path(index_path).write_bytes(content)
                    logger.info("Cached %d-byte index at %s", len(content), index_path)
                    return index_path

        logger.warning("No index downloaded for %s; leaving lookup to pysam", alignment_path)
        return None

    async def _download(self, client: httpx.AsyncClient, url: str) -> bytes | None:
        try:
            resp = await client.get(url)
        except httpx.RequestError as e:
            logger.warning("Index request to %s failed: %s", url, e)
            return None
        if resp.status_code == 404:
            logger.debug("No index at %s", url)
            return None
        if resp.status_code != 200:
            logger.warning("Index download from %s returned %d", url, resp.status_code)
            return None
        return resp.content

    def cleanup_session(self) -> int:
        """Delete this session's directory; return how many files were removed."""
        if not self.cache_dir.exists():
            return 0
        removed = 0
        for entry in self.cache_dir.iterdir():
            if entry.is_file():
                entry.unlink()
                removed += 1
        with contextlib.suppress(OSError):
            self.cache_dir.rmdir()
        return removed


async def ensure_cached_index(alignment_path: str, cache: IndexCache) -> str | None:
    """Download and cache the index of a remote BAM/CRAM if it is not cached yet."""
    return await cache.fetch_index(alignment_path)
