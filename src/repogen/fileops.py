"""Copying packages into the repository tree and writing index files."""

import logging
import shutil
from pathlib import Path
from typing import NamedTuple

from repogen.checksum import file_sha256
from repogen.errors import FileOpError
from repogen.models import Package

logger = logging.getLogger(__name__)


class CopyDecision(NamedTuple):
    source: Path | None
    destination: Path
    needs_copy: bool


def resolve_source(package: Package, repository_root: Path) -> Path | None:
    """Find the file backing `package`, if it exists locally.

    The scanned location wins. Packages rebuilt from an existing index fall
    back to their published location under the repository root.
    """
    if package.source_path is not None and package.source_path.is_file():
        return package.source_path
    if package.published_path:
        candidate = repository_root / package.published_path
        if candidate.is_file():
            return candidate
    return None


def reconcile_file(package: Package, destination: Path, repository_root: Path) -> CopyDecision:
    """Decide whether `package` has to be copied to `destination`.

    A package whose file cannot be found anywhere is not an error: its bytes
    may only exist in a remote store that the index already points at.

    Args:
        package: The package being published
        destination: Where the package file belongs in the repository
        repository_root: Root that `package.published_path` is relative to

    Returns:
        The resolved source (or None), the destination, and whether to copy
    """
    source = resolve_source(package, repository_root)
    if source is None:
        logger.debug(f"No local file for {package.name}, keeping metadata only")
        return CopyDecision(None, destination, False)

    if source.resolve() == destination.resolve():
        return CopyDecision(source, destination, False)

    if not destination.is_file():
        return CopyDecision(source, destination, True)

    if source.stat().st_size != destination.stat().st_size:
        return CopyDecision(source, destination, True)

    if package.sha256:
        try:
            if file_sha256(destination) != package.sha256:
                return CopyDecision(source, destination, True)
        except OSError as e:
            logger.debug(f"Could not hash {destination}, copying again: {e}")
            return CopyDecision(source, destination, True)
    else:
        try:
            if file_sha256(destination) != file_sha256(source):
                return CopyDecision(source, destination, True)
        except OSError:
            return CopyDecision(source, destination, True)

    return CopyDecision(source, destination, False)


def copy_file(source: Path, destination: Path) -> None:
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
    except OSError as e:
        raise FileOpError(f"failed to copy to {destination}: {e}", source) from e


def publish_file(package: Package, destination: Path, repository_root: Path) -> CopyDecision:
    """Place the package file at `destination` when needed.

    Returns:
        The decision that was acted upon
    """
    decision = reconcile_file(package, destination, repository_root)
    if decision.needs_copy and decision.source is not None:
        logger.debug(f"Copying {decision.source} -> {destination}")
        copy_file(decision.source, destination)
    elif decision.source is not None:
        logger.debug(f"{destination} is up to date")
    return decision


def write_file(path: Path, data: bytes | str) -> None:
    """Write an output file, creating parent directories as needed."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        else:
            path.write_bytes(data)
    except OSError as e:
        raise FileOpError(f"failed to write file: {e}", path) from e


def ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileOpError(f"failed to create directory: {e}", path) from e
