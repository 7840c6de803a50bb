"""Archive and digest helpers for release artifacts."""

from .archive import PackagingError, create_archive
from .digest import compute_sha256, read_digest_file, verify_digest_file, write_digest_file
from .pack import PackResult, pack_toolchain

__all__ = [
    "PackResult",
    "PackagingError",
    "compute_sha256",
    "create_archive",
    "pack_toolchain",
    "read_digest_file",
    "verify_digest_file",
    "write_digest_file",
]
