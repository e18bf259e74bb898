"""Identity keys and conflict-checked merging for incremental generation."""

import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import NamedTuple

from repogen.errors import ConflictError
from repogen.models import Package, PackageType

logger = logging.getLogger(__name__)


class PackageIdentity(NamedTuple):
    name: str
    version: str
    release: str | None = None
    architecture: str | None = None

    def __str__(self) -> str:
        return ":".join(part for part in self if part is not None)


def package_identity(package: Package, package_type: PackageType) -> PackageIdentity:
    """Build the key two packages must not share within one repository."""
    match package_type:
        case PackageType.RPM:
            release = str(package.extras.get("Release") or "1")
            return PackageIdentity(package.name, package.version, release, package.architecture)
        case PackageType.HOMEBREW:
            return PackageIdentity(package.name, package.version)
        case _:
            return PackageIdentity(package.name, package.version, architecture=package.architecture)


def find_duplicates(packages: Iterable[Package], package_type: PackageType) -> list[PackageIdentity]:
    """Identities that occur more than once among `packages`.

    Homebrew bottles of one version built for different platforms share an
    identity but are separate files, so they are not reported.
    """
    counts = Counter((package_identity(pkg, package_type), pkg.architecture) for pkg in packages)
    duplicates: list[PackageIdentity] = []
    for (identity, _), count in counts.items():
        if count > 1 and identity not in duplicates:
            duplicates.append(identity)
    return duplicates


def merge(
    existing: Sequence[Package],
    incoming: Sequence[Package],
    package_type: PackageType,
) -> list[Package]:
    """Combine already published packages with newly scanned ones.

    Args:
        existing: Packages re-read from the published index
        incoming: Packages found by the current scan
        package_type: Ecosystem, which decides how identities are built

    Returns:
        `existing` followed by `incoming`

    Raises:
        ConflictError: If any identity appears in both sequences, or more than
            once in `incoming`
    """
    if duplicates := find_duplicates(incoming, package_type):
        raise ConflictError([str(identity) for identity in duplicates])

    existing_ids = {package_identity(pkg, package_type) for pkg in existing}
    conflicts: list[PackageIdentity] = []
    for pkg in incoming:
        identity = package_identity(pkg, package_type)
        if identity in existing_ids and identity not in conflicts:
            conflicts.append(identity)

    if conflicts:
        raise ConflictError([str(identity) for identity in conflicts])

    logger.debug(f"Merged {len(existing)} existing and {len(incoming)} new {package_type} packages")
    return [*existing, *incoming]
