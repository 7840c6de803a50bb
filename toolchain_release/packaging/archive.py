"""Single-file archives of a directory with a BCJ + LZMA filter chain."""

from __future__ import annotations

import logging
import lzma
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

ARCHIVE_FORMATS = ("tar.xz", "7z")
SEVEN_ZIP_CANDIDATES = ("7z", "7za", "7zz")


class PackagingError(RuntimeError):
    """Raised when the archive or its digest cannot be produced."""


def xz_filters(level: int) -> List[dict]:
    return [
        {"id": lzma.FILTER_X86},
        {"id": lzma.FILTER_LZMA2, "preset": level},
    ]


def create_tar_xz(source_dir: Path, archive_path: Path, *, level: int = 5) -> Path:
    archive_path.parent.mkdir(parents=True, exist_ok=True)
    with lzma.open(archive_path, "wb", format=lzma.FORMAT_XZ, filters=xz_filters(level)) as compressed:
        with tarfile.open(fileobj=compressed, mode="w", format=tarfile.PAX_FORMAT) as bundle:
            bundle.add(source_dir, arcname=source_dir.name)
    return archive_path


def find_seven_zip() -> Optional[str]:
    for candidate in SEVEN_ZIP_CANDIDATES:
        found = shutil.which(candidate)
        if found:
            return found
    return None


def create_seven_zip(source_dir: Path, archive_path: Path, *, level: int = 5, executable: Optional[str] = None) -> Path:
    tool = executable or find_seven_zip()
    if not tool:
        raise PackagingError("7z executable not found on PATH.")
    command = [
        tool,
        "a",
        "-mmt",
        f"-mx{level}",
        "-m0=BCJ2",
        "-m1=LZMA",
        str(archive_path.resolve()),
        source_dir.name,
    ]
    logger.info("Running %s", " ".join(command))
    try:
        proc = subprocess.run(
            command,
            cwd=str(source_dir.parent),
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise PackagingError(f"Could not start {tool}: {exc}") from exc
    if proc.returncode != 0:
        raise PackagingError(f"7z failed ({proc.returncode}): {proc.stderr.strip() or proc.stdout.strip()}")
    return archive_path


def create_archive(source_dir: Path, archive_path: Path, *, level: int = 5, fmt: str = "tar.xz") -> Path:
    """Archive ``source_dir`` (as a single top-level folder) into ``archive_path``."""

    if not source_dir.is_dir():
        raise PackagingError(f"Directory to pack not found: {source_dir}")
    if not 0 <= level <= 9:
        raise PackagingError(f"Compression level must be between 0 and 9 (got {level}).")
    if archive_path.exists():
        archive_path.unlink()
    if fmt == "tar.xz":
        try:
            return create_tar_xz(source_dir, archive_path, level=level)
        except (lzma.LZMAError, tarfile.TarError, OSError) as exc:
            raise PackagingError(f"Failed to write {archive_path}: {exc}") from exc
    if fmt == "7z":
        return create_seven_zip(source_dir, archive_path, level=level)
    raise PackagingError(f"Unknown archive format '{fmt}'. Expected one of: {', '.join(ARCHIVE_FORMATS)}.")
