"""SHA-256 digests in ``sha256sum`` output format."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Tuple


def compute_sha256(path: Path) -> str:
    """Return the SHA-256 checksum for a file."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


def format_digest_line(sha256: str, filename: str) -> str:
    return f"{sha256}  {filename}\n"


def write_digest_file(archive: Path, digest_path: Path) -> str:
    """Hash ``archive`` and write ``<hex>  <name>`` to ``digest_path``."""

    sha = compute_sha256(archive)
    digest_path.parent.mkdir(parents=True, exist_ok=True)
    digest_path.write_text(format_digest_line(sha, archive.name), encoding="utf-8", newline="\n")
    return sha


def read_digest_file(digest_path: Path) -> Tuple[str, str]:
    line = digest_path.read_text(encoding="utf-8").strip()
    sha, sep, filename = line.partition("  ")
    if not sep or len(sha) != 64:
        raise ValueError(f"Malformed digest line in {digest_path}: {line!r}")
    return sha, filename.lstrip("*")


def verify_digest_file(digest_path: Path, archive: Path) -> bool:
    sha, filename = read_digest_file(digest_path)
    return filename == archive.name and sha == compute_sha256(archive)
