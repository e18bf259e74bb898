import logging
from collections.abc import Sequence

from repogen.codecs.apk import APKINDEX_ARCHIVE
from repogen.constants import DEFAULT_APK_ARCH
from repogen.generators.base import RepositoryGenerator, group_packages, with_default_arch
from repogen.models import Package, PackageType
from repogen.signing import RsaSigning, Unsigned

logger = logging.getLogger(__name__)


class ApkGenerator(RepositoryGenerator):
    """Alpine repository: one `<arch>/` directory per architecture."""

    package_type = PackageType.APK

    def generate(self, packages: Sequence[Package]) -> None:
        logger.info(f"Generating Alpine repository ({len(packages)} packages)")
        groups = group_packages(with_default_arch(packages, DEFAULT_APK_ARCH), lambda pkg: pkg.architecture)

        for arch, group in sorted(groups.items()):
            published = [self.publish(pkg, f"{arch}/{pkg.basename}") for pkg in group]
            index = self.codec.write_index(published)
            self.write(f"{arch}/{APKINDEX_ARCHIVE}", index)

            match self.signing:
                case RsaSigning(signer=signer, key_name=key_name):
                    self.write(f"{arch}/{APKINDEX_ARCHIVE}.SIGN.RSA.{key_name}.pub", signer.sign_rsa(index))
                case Unsigned():
                    logger.warning(f"APKINDEX for {arch} is not signed")
                case _:
                    raise self.unsupported_signing()
            logger.info(f"Generated APKINDEX for {arch} ({len(published)} packages)")

        if isinstance(self.signing, RsaSigning):
            self.write(f"{self.signing.key_name}.pub", self.signing.signer.get_public_key())

        logger.info(f"Alpine repository generated in {self.root}")
