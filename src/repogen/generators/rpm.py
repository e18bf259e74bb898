"""Yum/DNF repository layout: <version>/<arch>/{Packages,repodata}."""

import logging
import re
from collections.abc import Sequence

from repogen.archive import Compression, compress
from repogen.checksum import sha256_hex
from repogen.codecs.rpm import write_repomd
from repogen.constants import DEFAULT_RPM_ARCH, DISTRO_DEFAULT_VERSIONS, FALLBACK_RPM_VERSION
from repogen.generators.base import RepositoryGenerator, group_packages, with_default_arch
from repogen.models import DistroVariant, Package, PackageType, RepositoryConfig
from repogen.signing import GpgSigning, Unsigned

logger = logging.getLogger(__name__)


def sanitize_repo_id(name: str) -> str:
    """Lowercase `name`, turn spaces, '_' and '.' into '-' and drop anything else."""
    name = re.sub(r"[ _.]", "-", name.lower())
    return re.sub(r"[^a-z0-9-]", "", name)


def render_repo_file(config: RepositoryConfig, signed: bool) -> str:
    """Render a `.repo` file pointing dnf/yum at the published tree."""
    base_url = (config.base_url or "").rstrip("/")
    lines = [
        f"[{sanitize_repo_id(config.origin)}]",
        f"name={config.label or config.origin}",
        f"baseurl={base_url}/$releasever/$basearch",
        "enabled=1",
        f"gpgcheck={1 if signed else 0}",
    ]
    if signed and config.distro_variant == DistroVariant.FEDORA:
        lines.append("repo_gpgcheck=1")
    if signed and config.gpg_key_url:
        lines.append(f"gpgkey={config.gpg_key_url}")
    if config.distro_variant in (DistroVariant.RHEL, DistroVariant.CENTOS):
        lines.append("metadata_expire=86400")
    return "\n".join(lines) + "\n"


class RpmGenerator(RepositoryGenerator):
    package_type = PackageType.RPM

    def release_version(self, pkg: Package) -> str:
        """Pick the `<version>` directory.

        Explicit config wins, then the package's distro tag, then the distro default.
        """
        if self.config.version:
            return self.config.version
        if distro_version := pkg.extras.get("DistroVersion"):
            return str(distro_version)
        return DISTRO_DEFAULT_VERSIONS.get(self.config.distro_variant, FALLBACK_RPM_VERSION)

    def generate(self, packages: Sequence[Package]) -> None:
        logger.info(f"Generating RPM repository ({len(packages)} packages)")
        groups = group_packages(
            with_default_arch(packages, DEFAULT_RPM_ARCH),
            lambda pkg: (self.release_version(pkg), pkg.architecture),
        )

        for (version, arch), group in sorted(groups.items()):
            base = f"{version}/{arch}"
            published = [self.publish(pkg, f"{base}/Packages/{pkg.basename}") for pkg in group]

            primary_xml = self.codec.write_index(published)
            primary_gz = compress(primary_xml, Compression.GZIP)
            primary_checksum = sha256_hex(primary_gz)
            repodata = f"{base}/repodata"
            for stale in (self.root / repodata).glob("*-primary.xml.gz"):
                if not stale.name.startswith(primary_checksum):
                    self.remove(stale.relative_to(self.root))
            self.write(f"{repodata}/{primary_checksum}-primary.xml.gz", primary_gz)

            repomd = write_repomd(primary_gz, primary_checksum, len(primary_xml))
            self.write(f"{repodata}/repomd.xml", repomd)

            match self.signing:
                case GpgSigning(signer=signer):
                    self.write(f"{repodata}/repomd.xml.asc", signer.sign_detached(repomd))
                case Unsigned():
                    self.remove(f"{repodata}/repomd.xml.asc")
                case _:
                    raise self.unsupported_signing()
            logger.info(f"Generated repodata for {base} ({len(published)} packages)")

        if self.config.base_url:
            signed = isinstance(self.signing, GpgSigning)
            repo_file = f"{self.config.distro_variant}.repo"
            self.write(repo_file, render_repo_file(self.config, signed))
            logger.info(f"Wrote {repo_file}")

        if isinstance(self.signing, Unsigned):
            logger.warning("RPM repository is not signed")
        logger.info(f"RPM repository generated in {self.root} ({len(groups)} version/arch groups)")
