"""APT repository layout: pool/, dists/<codename>/ and the signed Release files."""

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from email.utils import format_datetime
from pathlib import PurePosixPath

from repogen.archive import Compression, compress
from repogen.checksum import checksum_bytes
from repogen.constants import DEFAULT_DEB_ARCH
from repogen.generators.base import RepositoryGenerator, with_default_arch
from repogen.models import Package, PackageType, RepositoryConfig
from repogen.signing import GpgSigning, Unsigned

logger = logging.getLogger(__name__)

RELEASE_HASHES = [
    ("MD5Sum", "md5"),
    ("SHA1", "sha1"),
    ("SHA256", "sha256"),
    ("SHA512", "sha512"),
]


def pool_path(component: str, pkg: Package) -> str:
    """Return `pool/<component>/<first letter or 0>/<name>/<file>`."""
    first = pkg.name[0] if pkg.name and "a" <= pkg.name[0] <= "z" else "0"
    return str(PurePosixPath("pool", component, first, pkg.name, pkg.basename))


def render_release(
    config: RepositoryConfig,
    index_files: Sequence[tuple[str, bytes]],
    date: datetime | None = None,
) -> bytes:
    """Render the Release file summarizing every per-architecture index.

    Args:
        config: Supplies origin, label, suite, codename, architectures and components
        index_files: `(path relative to dists/<codename>, content)` pairs
        date: Timestamp to record, defaults to now (UTC)
    """
    if date is None:
        date = datetime.now(UTC)
    lines = [
        f"Origin: {config.origin}",
        f"Label: {config.label}",
        f"Suite: {config.suite}",
        f"Codename: {config.codename}",
        f"Date: {format_datetime(date.astimezone(UTC))}",
        f"Architectures: {' '.join(config.architectures)}",
        f"Components: {' '.join(config.components)}",
    ]
    checksums = [(path, checksum_bytes(content)) for path, content in index_files]
    for field, attr in RELEASE_HASHES:
        lines.append(f"{field}:")
        for path, checksum in checksums:
            lines.append(f" {getattr(checksum, attr)} {checksum.size} {path}")
    return ("\n".join(lines) + "\n").encode("utf-8")


class DebGenerator(RepositoryGenerator):
    package_type = PackageType.DEB

    def generate(self, packages: Sequence[Package]) -> None:
        config = self.config
        component = config.default_component
        dist_dir = PurePosixPath("dists", config.codename)
        logger.info(f"Generating APT repository for {config.codename} ({len(packages)} packages)")

        published: list[Package] = []
        for pkg in with_default_arch(packages, DEFAULT_DEB_ARCH):
            if pkg.architecture != "all" and pkg.architecture not in config.architectures:
                logger.warning(
                    f"Skipping {pkg.name} {pkg.version}: architecture {pkg.architecture} is not configured"
                )
                continue
            published.append(self.publish(pkg, pool_path(component, pkg)))

        index_files: list[tuple[str, bytes]] = []
        for comp in config.components:
            for arch in config.architectures:
                arch_packages = [
                    pkg for pkg in published if comp == component and pkg.architecture in (arch, "all")
                ]
                content = self.codec.write_index(arch_packages)
                relative = f"{comp}/binary-{arch}/Packages"
                compressed = compress(content, Compression.GZIP)
                self.write(dist_dir / relative, content)
                self.write(dist_dir / f"{relative}.gz", compressed)
                index_files += [(relative, content), (f"{relative}.gz", compressed)]
                logger.debug(f"Indexed {len(arch_packages)} packages for {comp}/{arch}")

        release = render_release(config, index_files)
        self.write(dist_dir / "Release", release)

        match self.signing:
            case GpgSigning(signer=signer):
                self.write(dist_dir / "InRelease", signer.sign_cleartext(release))
                self.write(dist_dir / "Release.gpg", signer.sign_detached(release))
                logger.info("Signed Release (InRelease, Release.gpg)")
            case Unsigned():
                # apt still expects InRelease to be present
                self.write(dist_dir / "InRelease", release)
                self.remove(dist_dir / "Release.gpg")
                logger.warning("Repository is not signed; clients need [trusted=yes] to use it")
            case _:
                raise self.unsupported_signing()

        logger.info(f"APT repository generated in {self.root} ({len(published)} packages)")
