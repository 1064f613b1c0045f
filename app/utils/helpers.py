"""
Helper utilities for unpackd.

Path helpers shared by the rule matcher, the rescanner and the pipeline.
"""

import os
from datetime import datetime
from pathlib import Path
from typing import Optional


def relative_parts(path: Path, base: Path) -> Optional[tuple]:
    """
    Return the segments of ``path`` below ``base``.

    Args:
        path: Path to split
        base: Directory expected to contain ``path``

    Returns:
        Tuple of path segments, or None if ``path`` is not below ``base``
    """
    try:
        return Path(path).relative_to(base).parts
    except ValueError:
        return None


def contains_hidden(path: Path, base: Path) -> bool:
    """Check if any segment of ``path`` below ``base`` is hidden."""
    parts = relative_parts(path, base)
    if parts is None:
        return False
    return any(part.startswith('.') for part in parts)


def path_depth(path: Path, base: Path) -> int:
    """
    Count the segments of ``path`` below ``base``.

    A file directly inside ``base`` has depth 1.

    Returns:
        Depth, or -1 if ``path`` is not below ``base``
    """
    parts = relative_parts(path, base)
    if parts is None:
        return -1
    return len(parts)


def is_within(path: Path, base: Path) -> bool:
    """Check if ``path`` is ``base`` or lies below it."""
    return relative_parts(path, base) is not None


def set_mtime(path: Path, mtime: Optional[datetime]) -> None:
    """Apply ``mtime`` as access and modification time. None leaves timestamps alone."""
    if mtime is None:
        return
    ts = mtime.timestamp()
    os.utime(path, (ts, ts))


def format_bytes(bytes_count: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"
