"""Directory patterns that a scan leaves out, chosen per operating system."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable

# Keyed by the prefix of ``sys.platform``; looked up in order.
_PLATFORM_PATTERNS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "darwin",
        (
            ".Trash", ".Trashes", ".fseventsd", ".Spotlight-V100",
            ".DocumentRevisions-V100", ".TemporaryItems", ".DS_Store",
            "System/Library", "Library/Caches", "private/var/vm",
        ),
    ),
    (
        "linux",
        (
            ".cache", ".local/share/Trash", "proc", "sys", "dev",
            "tmp", "var/tmp", "run", "mnt",
        ),
    ),
    (
        "win32",
        (
            "$Recycle.Bin", "System Volume Information",
            "pagefile.sys", "hiberfil.sys", "swapfile.sys",
        ),
    ),
)

_FALLBACK_PATTERNS = (".Trash", ".cache", "tmp")


def get_skip_patterns() -> list[str]:
    """Return the directory patterns to skip on the current platform."""
    platform = sys.platform
    for prefix, patterns in _PLATFORM_PATTERNS:
        if platform.startswith(prefix):
            return list(patterns)
    return list(_FALLBACK_PATTERNS)


def _base_name(path: str) -> str:
    """Last element of a path; "." for an empty path, the separator for a root."""
    if not path:
        return "."
    separators = os.sep + (os.altsep or "")
    stripped = path.rstrip(separators)
    if not stripped:
        return os.sep
    cut = max(stripped.rfind(sep) for sep in separators)
    return stripped[cut + 1:]


def should_skip_path(path: str, skip_patterns: Iterable[str]) -> bool:
    """Tell whether a path matches a skip pattern or is a shallow hidden entry."""
    base = _base_name(path)
    if any(pattern in path or base == pattern for pattern in skip_patterns):
        return True
    # Hidden entries near the root are skipped; deeper hidden ones are kept.
    return base.startswith(".") and path.count(os.sep) <= 3