from __future__ import annotations

import fnmatch
import os
from typing import List, Optional, Sequence

from .errors import ArchivePathError


def norm_path(p: str) -> str:
    """Normalize archive paths to a canonical forward-slash form.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ArchivePathError(f"Path may not contain '..': {p}")
    return "/".join(parts)


def split_patterns(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated glob list, keeping order.

    Returns None when nothing was supplied so callers can omit the option.
    """
    if not value:
        return None
    return value.split(",")


def matches_any(rel_path: str, patterns: Sequence[str]) -> bool:
    """Match a relative POSIX path against fnmatch-style globs.

    Patterns without a slash also match the basename, so ``*.log`` catches
    ``logs/a.log``.
    """
    base = rel_path.rsplit("/", 1)[-1]
    for pat in patterns:
        pat = pat.strip()
        if not pat:
            continue
        if fnmatch.fnmatchcase(rel_path, pat):
            return True
        if "/" not in pat and fnmatch.fnmatchcase(base, pat):
            return True
    return False


def safe_join(root: str, rel_path: str) -> str:
    """Join an archive path under root, refusing anything that escapes it."""
    rel = norm_path(rel_path)
    dest = os.path.abspath(os.path.join(root, *rel.split("/"))) if rel else os.path.abspath(root)
    base = os.path.abspath(root)
    if dest != base and not dest.startswith(base + os.sep):
        raise ArchivePathError(f"Entry escapes output directory: {rel_path}")
    return dest
