"""Cleanup for directory entries that break incremental builds after a cache restore."""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def _is_junction(path: Path) -> bool:
    is_junction = getattr(path, "is_junction", None)
    return bool(is_junction and is_junction())


def remove_host_link(build_dir: Path, name: str = "host") -> bool:
    """Remove ``build_dir/name`` without recursing into a real directory.

    A restored cache may carry a ``host`` symlink or junction created on another
    OS; the build tool panics when it tries to remove it. Returns ``True`` when
    something was removed and ``False`` when nothing was there. ``OSError`` from
    a non-empty real directory propagates to the caller.
    """

    target = build_dir / name
    if target.is_symlink():
        target.unlink()
    elif _is_junction(target):
        os.rmdir(target)
    elif target.is_dir():
        target.rmdir()
    elif target.exists():
        target.unlink()
    else:
        logger.debug("No %s entry under %s", name, build_dir)
        return False
    logger.info("Removed %s", target)
    return True
