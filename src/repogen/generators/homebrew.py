import logging
from collections.abc import Sequence

from repogen.generators.base import RepositoryGenerator, group_packages
from repogen.models import Package, PackageType
from repogen.signing import Unsigned

logger = logging.getLogger(__name__)


class HomebrewGenerator(RepositoryGenerator):
    """Homebrew tap: `bottles/` plus one `Formula/<name>.rb` per package name."""

    package_type = PackageType.HOMEBREW

    def generate(self, packages: Sequence[Package]) -> None:
        if not isinstance(self.signing, Unsigned):
            raise self.unsupported_signing()

        logger.info(f"Generating Homebrew tap ({len(packages)} bottles)")
        groups = group_packages(packages, lambda pkg: pkg.name)
        for name, bottles in sorted(groups.items()):
            published = [self.publish(bottle, f"bottles/{bottle.basename}") for bottle in bottles]
            self.write(f"Formula/{name}.rb", self.codec.write_index(published))
            logger.debug(f"Generated formula for {name} ({len(published)} bottles)")

        logger.info(f"Homebrew tap generated in {self.root} ({len(groups)} formulas)")
