"""Single-pass multi-digest hashing of package files and metadata blobs."""

import hashlib
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from repogen.constants import CHUNK_SIZE
from repogen.models import Package

logger = logging.getLogger(__name__)


class Checksum(BaseModel):
    """Digests and size of one file, computed once."""

    model_config = ConfigDict(frozen=True)

    md5: str
    sha1: str
    sha256: str
    sha512: str
    size: int

    def apply_to(self, package: Package) -> Package:
        """Return a copy of `package` carrying these digests and size."""
        return package.model_copy(
            update={
                "md5": self.md5,
                "sha1": self.sha1,
                "sha256": self.sha256,
                "sha512": self.sha512,
                "size": self.size,
            }
        )


def _new_hashers() -> dict[str, "hashlib._Hash"]:
    return {
        "md5": hashlib.md5(),
        "sha1": hashlib.sha1(),
        "sha256": hashlib.sha256(),
        "sha512": hashlib.sha512(),
    }


def calculate_checksums(path: Path) -> Checksum:
    """Hash a file with MD5, SHA1, SHA256 and SHA512 in a single read.

    Args:
        path: File to hash

    Returns:
        The digests as lowercase hex strings plus the number of bytes read

    Raises:
        OSError: If the file cannot be opened or read
    """
    hashers = _new_hashers()
    size = 0
    with path.open("rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            size += len(chunk)
            for hasher in hashers.values():
                hasher.update(chunk)
    logger.debug(f"Hashed {path} ({size} bytes)")
    return Checksum(size=size, **{name: hasher.hexdigest() for name, hasher in hashers.items()})


def checksum_bytes(data: bytes) -> Checksum:
    """Hash an in-memory payload the same way as `calculate_checksums`."""
    hashers = _new_hashers()
    for hasher in hashers.values():
        hasher.update(data)
    return Checksum(size=len(data), **{name: hasher.hexdigest() for name, hasher in hashers.items()})


def sha256_hex(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def file_sha256(path: Path) -> str:
    hasher = hashlib.sha256()
    with path.open("rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return hasher.hexdigest()
