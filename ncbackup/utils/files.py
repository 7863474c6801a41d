"""File helpers for ncbackup."""

import gzip
import os
import zlib

_CHUNK_SIZE = 1024 * 1024


def format_size(num_bytes: int) -> str:
    """Render a byte count the way ``du -h`` does (e.g. ``512B``, ``1.5M``)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G", "T"):
        if size < 1024 or unit == "T":
            if unit == "B":
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"


def verify_gzip(path: str) -> bool:
    """
    Check that a gzip file decompresses cleanly to the end.

    Args:
        path: Path to the ``.gz`` file

    Returns:
        bool: True if every member decompresses and the CRC checks pass
    """
    try:
        with gzip.open(path, "rb") as f:
            while f.read(_CHUNK_SIZE):
                pass
    except (OSError, EOFError, zlib.error):
        return False
    return True


def is_nonempty_file(path: str) -> bool:
    return os.path.isfile(path) and os.path.getsize(path) > 0
