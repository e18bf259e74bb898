"""Finding package files in the input directory and telling their type apart."""

import logging
import os
import threading
from pathlib import Path
from typing import NamedTuple

from repogen.errors import GenerationCancelled
from repogen.models import PackageType

logger = logging.getLogger(__name__)

DEB_MAGIC = b"!<arch>\ndebian"
RPM_MAGIC = b"\xed\xab\xee\xdb"
GZIP_MAGIC = b"\x1f\x8b"
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"
XZ_MAGIC = b"\xfd\x37\x7a\x58\x5a\x00"


class ScannedPackage(NamedTuple):
    path: Path
    type: PackageType
    size: int


def detect_package_type(path: Path) -> PackageType | None:
    """Identify a package file from its leading bytes and its name.

    Returns:
        The package type, or None for files that are not packages

    Raises:
        OSError: If the file cannot be read
    """
    with path.open("rb") as f:
        header = f.read(512)
    name = path.name

    if header.startswith(DEB_MAGIC) or path.suffix == ".deb":
        return PackageType.DEB
    if header.startswith(RPM_MAGIC) or path.suffix == ".rpm":
        return PackageType.RPM
    if header.startswith(GZIP_MAGIC) and path.suffix == ".apk":
        return PackageType.APK

    if ".pkg.tar." in name:
        if header.startswith(ZSTD_MAGIC) or name.endswith(".pkg.tar.zst"):
            return PackageType.PACMAN
        if header.startswith(XZ_MAGIC) or name.endswith(".pkg.tar.xz"):
            return PackageType.PACMAN
        if header.startswith(GZIP_MAGIC) and name.endswith(".pkg.tar.gz"):
            return PackageType.PACMAN
    if name.endswith(".pkg.tar"):
        return PackageType.PACMAN

    if ".bottle.tar" in name:
        return PackageType.HOMEBREW

    return None


def scan_directory(
    input_dir: Path,
    exclude: Path | None = None,
    cancel: threading.Event | None = None,
) -> list[ScannedPackage]:
    """Recursively collect package files under `input_dir`.

    Args:
        input_dir: Directory to walk
        exclude: Directory to skip, typically the output directory
        cancel: Checked before each file; when set the scan stops

    Returns:
        Packages in a stable (sorted path) order

    Raises:
        GenerationCancelled: If `cancel` is set during the scan
    """
    excluded = exclude.resolve() if exclude is not None else None
    found: list[ScannedPackage] = []

    for dirpath, dirnames, filenames in os.walk(input_dir):
        current = Path(dirpath)
        if excluded is not None:
            dirnames[:] = [d for d in dirnames if (current / d).resolve() != excluded]
        dirnames.sort()

        for filename in sorted(filenames):
            if cancel is not None and cancel.is_set():
                raise GenerationCancelled("scan cancelled", input_dir)

            path = current / filename
            if not path.is_file():
                continue
            try:
                package_type = detect_package_type(path)
            except OSError as e:
                logger.warning(f"Failed to detect type for {path}: {e}")
                continue
            if package_type is None:
                continue

            logger.debug(f"Found {package_type} package: {path}")
            found.append(ScannedPackage(path, package_type, path.stat().st_size))

    logger.info(f"Found {len(found)} packages in {input_dir}")
    return found
