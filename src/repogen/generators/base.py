import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import ClassVar

from repogen.checksum import calculate_checksums
from repogen.codecs import PackageCodec, get_codec
from repogen.errors import FileOpError, GenerationCancelled, SigningError
from repogen.fileops import publish_file, write_file
from repogen.models import Package, PackageType, RepositoryConfig
from repogen.signing import SigningMode, Unsigned

logger = logging.getLogger(__name__)


class RepositoryGenerator(ABC):
    """Lays out one ecosystem's repository tree under the output directory.

    Args:
        config: Resolved configuration for this run
        signing: How (and whether) to sign the generated metadata
        cancel: Event checked between packages; set it to stop early
    """

    package_type: ClassVar[PackageType]

    def __init__(
        self,
        config: RepositoryConfig,
        signing: SigningMode | None = None,
        cancel: threading.Event | None = None,
    ):
        self.config = config
        self.signing: SigningMode = signing if signing is not None else Unsigned()
        self.cancel = cancel
        self.codec: PackageCodec = get_codec(self.package_type, config)

    @property
    def root(self) -> Path:
        return self.config.output_dir

    def validate(self, packages: Sequence[Package]) -> None:
        """Check configuration requirements before anything is written.

        Raises:
            InvalidConfigError: If the configuration cannot produce this repository
        """

    @abstractmethod
    def generate(self, packages: Sequence[Package]) -> None:
        """Copy packages into place and write (and sign) the index files."""

    def check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise GenerationCancelled(f"{self.package_type} generation cancelled")

    def unsupported_signing(self) -> SigningError:
        return SigningError(f"{type(self.signing).__name__} signing is not supported for {self.package_type}")

    def publish(self, pkg: Package, relative_path: str) -> Package:
        """Copy a package to `relative_path` under the root if needed.

        Checksums are recomputed from the destination after a copy, and the
        returned record's `published_path` is set to `relative_path`.
        """
        self.check_cancelled()
        decision = publish_file(pkg, self.root / relative_path, self.root)
        if decision.needs_copy:
            try:
                pkg = calculate_checksums(decision.destination).apply_to(pkg)
            except OSError as e:
                raise FileOpError(f"cannot hash published file: {e}", decision.destination) from e
        return pkg.model_copy(update={"published_path": relative_path})

    def write(self, relative_path: str | Path, data: bytes | str) -> Path:
        path = self.root / relative_path
        write_file(path, data)
        logger.debug(f"Wrote {path}")
        return path

    def remove(self, relative_path: str | Path) -> None:
        """Delete a stale output file, if present."""
        path = self.root / relative_path
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise FileOpError(f"cannot remove stale file: {e}", path) from e


def group_packages[K](packages: Sequence[Package], key: Callable[[Package], K]) -> dict[K, list[Package]]:
    groups: dict[K, list[Package]] = defaultdict(list)
    for pkg in packages:
        groups[key(pkg)].append(pkg)
    return dict(groups)


def with_default_arch(packages: Sequence[Package], default: str) -> list[Package]:
    return [pkg if pkg.architecture else pkg.model_copy(update={"architecture": default}) for pkg in packages]
