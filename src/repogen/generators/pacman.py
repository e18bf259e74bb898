import logging
from collections.abc import Sequence

from repogen.codecs.pacman import sanitize_repo_name
from repogen.constants import DEFAULT_PACMAN_ARCH
from repogen.errors import FileOpError, InvalidConfigError
from repogen.generators.base import RepositoryGenerator, group_packages, with_default_arch
from repogen.models import Package, PackageType
from repogen.signing import GPGSigner, GpgSigning, Unsigned

logger = logging.getLogger(__name__)


class PacmanGenerator(RepositoryGenerator):
    """Arch Linux repository: `<arch>/<repo>.db` plus the package files."""

    package_type = PackageType.PACMAN

    @property
    def db_name(self) -> str:
        return sanitize_repo_name(self.config.repo_name or "")

    def validate(self, packages: Sequence[Package]) -> None:
        if not self.db_name.strip("-"):
            raise InvalidConfigError("a repository name (--repo-name) is required for pacman repositories")

    def generate(self, packages: Sequence[Package]) -> None:
        self.validate(packages)
        db_name = self.db_name
        logger.info(f"Generating pacman repository '{db_name}' ({len(packages)} packages)")
        packages = with_default_arch(packages, DEFAULT_PACMAN_ARCH)
        groups = group_packages(packages, lambda pkg: pkg.architecture)

        for arch, group in sorted(groups.items()):
            published = [self.publish(pkg, f"{arch}/{pkg.basename}") for pkg in group]
            database = self.codec.write_index(published)
            db_files = [f"{arch}/{db_name}.db.tar.zst", f"{arch}/{db_name}.db"]
            for db_file in db_files:
                self.write(db_file, database)

            match self.signing:
                case GpgSigning(signer=signer):
                    signature = signer.sign_detached_binary(database)
                    for db_file in db_files:
                        self.write(f"{db_file}.sig", signature)
                    for pkg in published:
                        self.sign_package(signer, pkg)
                case Unsigned():
                    for db_file in db_files:
                        self.remove(f"{db_file}.sig")
                    logger.warning(f"pacman database for {arch} is not signed")
                case _:
                    raise self.unsupported_signing()
            logger.info(f"Generated {db_name}.db for {arch} ({len(published)} packages)")

        logger.info(f"pacman repository generated in {self.root}")

    def sign_package(self, signer: GPGSigner, pkg: Package) -> None:
        package_file = self.root / pkg.published_path
        if not package_file.is_file():
            logger.debug(f"Not signing {pkg.published_path}: no local copy")
            return
        try:
            data = package_file.read_bytes()
        except OSError as e:
            raise FileOpError(f"cannot read package for signing: {e}", package_file) from e
        self.write(f"{pkg.published_path}.sig", signer.sign_detached_binary(data))
