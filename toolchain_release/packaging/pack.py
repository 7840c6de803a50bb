"""Pack the toolchain directory and place archive + digest in the workspace root."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict

from .archive import PackagingError, create_archive
from .digest import write_digest_file

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PackResult:
    archive_path: Path
    digest_path: Path
    sha256: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "archive_path": str(self.archive_path),
            "digest_path": str(self.digest_path),
            "sha256": self.sha256,
        }


def _move(source: Path, destination_dir: Path) -> Path:
    target = destination_dir / source.name
    if target.resolve() == source.resolve():
        return target
    if target.exists():
        target.unlink()
    shutil.move(str(source), str(target))
    return target


def pack_toolchain(
    dist_dir: Path,
    *,
    directory: str,
    destination: Path,
    packed_file: str,
    digest_file: str,
    level: int = 5,
    fmt: str = "tar.xz",
) -> PackResult:
    """Archive ``dist_dir/directory`` then hash it, working inside ``dist_dir``.

    The digest is written only after the archive is closed, so it always
    describes the bytes moved next to it.
    """

    source = dist_dir / directory
    if not source.is_dir():
        raise PackagingError(f"Directory to pack not found: {source}")

    archive = create_archive(source, dist_dir / packed_file, level=level, fmt=fmt)
    digest = dist_dir / digest_file
    sha = write_digest_file(archive, digest)
    logger.info("Packed %s (sha256 %s)", archive.name, sha)

    destination.mkdir(parents=True, exist_ok=True)
    return PackResult(
        archive_path=_move(archive, destination),
        digest_path=_move(digest, destination),
        sha256=sha,
    )
