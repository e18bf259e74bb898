import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import ClassVar

from repogen.checksum import Checksum, calculate_checksums
from repogen.errors import ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)


class PackageCodec(ABC):
    """Reader and writer for one ecosystem's package and index formats."""

    package_type: ClassVar[PackageType]

    @abstractmethod
    def parse_package(self, path: Path) -> Package:
        """Read a package file into a `Package` with checksums filled in.

        Raises:
            ParseError: If the container or its metadata block is malformed
        """

    @abstractmethod
    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Serialize packages into the ecosystem's primary index file.

        Raises:
            MetadataGenError: If the index cannot be produced
        """

    @abstractmethod
    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        """Rebuild `Package` records from a previously generated repository.

        Raises:
            MetadataNotFoundError: If there is no index to read
            ParseError: If an index exists but cannot be read
        """

    @staticmethod
    def checksum_package_file(path: Path) -> Checksum:
        """Stream a package file through the digests without loading it."""
        try:
            return calculate_checksums(path)
        except OSError as e:
            raise ParseError(f"cannot read package file: {e}", path) from e
