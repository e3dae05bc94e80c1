"""Path checks applied before a source opens a file."""

from __future__ import annotations

from pathlib import Path

from ..config import BamstackConfig
from ..constants import REMOTE_FILE_SCHEMES

MAX_FILE_PATH_LENGTH = 2048

ALIGNMENT_EXTENSIONS = (".bam", ".cram")
REFERENCE_EXTENSIONS = (".fa", ".fasta", ".fa.gz", ".fasta.gz", ".fna", ".fna.gz")


def is_remote(file_path: str) -> bool:
    return file_path.startswith(REMOTE_FILE_SCHEMES)


def validate_path(
    file_path: str,
    config: BamstackConfig,
    allowed_extensions: tuple[str, ...] = ALIGNMENT_EXTENSIONS,
) -> None:
    """Check that ``file_path`` may be opened under ``config``.

    Args:
        file_path: Local path or URL.
        config: Runtime configuration.
        allowed_extensions: Lower-case suffixes accepted for this kind of file.

    Raises:
        ValueError: If the path is too long, has the wrong suffix, uses a
            disabled or unsupported remote scheme, or lies outside the
            allowed directories.
    """
    if len(file_path) > MAX_FILE_PATH_LENGTH:
        raise ValueError(f"File path too long (max {MAX_FILE_PATH_LENGTH} characters)")

    if not file_path.lower().endswith(allowed_extensions):
        raise ValueError(f"Unsupported file type. Allowed extensions: {allowed_extensions}")

    if "://" in file_path:
        _check_remote(file_path, config)
    elif config.allowed_directories:
        _check_directory(file_path, config.allowed_directories)


def _check_remote(url: str, config: BamstackConfig) -> None:
    if not config.allow_remote_files:
        raise ValueError("Remote files are disabled")
    if not is_remote(url):
        raise ValueError(f"Scheme not supported for remote file: {url}")


def _check_directory(file_path: str, allowed_directories: list[str]) -> None:
    try:
        resolved = Path(file_path).resolve()
    except OSError as e:
        raise ValueError(f"Invalid path: {file_path}") from e

    for directory in allowed_directories:
        try:
            if resolved.is_relative_to(Path(directory).resolve()):
                return
        except OSError:
            continue
    raise ValueError("Path is not in allowed directories")
