"""Debian `.deb` packages and APT `Packages` indexes."""

import gzip
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from debian import deb822
from debian.arfile import ArError, ArFile

from repogen.archive import ARCHIVE_ERRORS, Compression, decompress, read_tar_member
from repogen.codecs.base import PackageCodec
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)

# Control fields that map onto Package attributes rather than extras
CONTROL_FIELDS = {
    "Package": "name",
    "Version": "version",
    "Architecture": "architecture",
    "Description": "description",
    "Maintainer": "maintainer",
    "Homepage": "homepage",
    "License": "license",
}
LIST_FIELDS = {
    "Depends": "dependencies",
    "Conflicts": "conflicts",
}
INDEX_FIELDS = {"Filename", "Size", "MD5sum", "SHA1", "SHA256", "SHA512"}


def split_relations(value: str) -> list[str]:
    return [dep.strip() for dep in value.split(",") if dep.strip()]


def paragraph_to_package(paragraph: deb822.Deb822) -> Package:
    """Map a control or Packages paragraph onto a Package.

    Anything that is not a known field is kept verbatim in `extras`.
    """
    fields: dict = {}
    extras: dict[str, str | int] = {}
    for key, value in paragraph.items():
        if key in CONTROL_FIELDS:
            fields[CONTROL_FIELDS[key]] = value
        elif key in LIST_FIELDS:
            fields[LIST_FIELDS[key]] = split_relations(value)
        elif key not in INDEX_FIELDS:
            extras[key] = value

    if not fields.get("name"):
        raise ValueError("control data has no Package field")

    return Package(**fields, extras=extras)


def parse_control(text: str) -> Package:
    return paragraph_to_package(deb822.Deb822(text.splitlines()))


def extract_control(fileobj: BinaryIO) -> str:
    """Pull the `control` file out of a .deb's `control.tar*` member.

    Only the control member is read; the data member is skipped over.
    """
    deb = ArFile(fileobj=fileobj)
    for member in deb.getmembers():
        if not member.name.startswith("control.tar"):
            continue
        control_tar = decompress(member.read(), Compression.from_name(member.name))
        control = read_tar_member(control_tar, ["./control", "control"])
        if control is None:
            raise ValueError(f"{member.name} has no control file")
        return control.decode("utf-8")
    raise ValueError("no control.tar member found")


def _paragraph_for(pkg: Package) -> deb822.Deb822:
    paragraph = deb822.Deb822()
    paragraph["Package"] = pkg.name
    paragraph["Version"] = pkg.version
    paragraph["Architecture"] = pkg.architecture
    paragraph["Filename"] = pkg.published_path or pkg.basename
    paragraph["Size"] = str(pkg.size)
    paragraph["MD5sum"] = pkg.md5
    paragraph["SHA1"] = pkg.sha1
    paragraph["SHA256"] = pkg.sha256
    paragraph["SHA512"] = pkg.sha512

    if pkg.maintainer:
        paragraph["Maintainer"] = pkg.maintainer
    if pkg.homepage:
        paragraph["Homepage"] = pkg.homepage
    if pkg.license:
        paragraph["License"] = pkg.license
    if pkg.description:
        paragraph["Description"] = pkg.description
    if pkg.dependencies:
        paragraph["Depends"] = ", ".join(pkg.dependencies)
    if pkg.conflicts:
        paragraph["Conflicts"] = ", ".join(pkg.conflicts)

    for key, value in pkg.extras.items():
        if key in paragraph or key in CONTROL_FIELDS or key in LIST_FIELDS:
            continue
        paragraph[key] = str(value)
    return paragraph


class DebCodec(PackageCodec):
    package_type = PackageType.DEB

    def parse_package(self, path: Path) -> Package:
        checksum = self.checksum_package_file(path)
        try:
            with path.open("rb") as fh:
                pkg = parse_control(extract_control(fh))
        except (ArError, *ARCHIVE_ERRORS) as e:
            raise ParseError(f"invalid Debian package: {e}", path) from e
        return checksum.apply_to(pkg).model_copy(update={"source_path": path})

    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Render an APT `Packages` file, sorted by package name."""
        try:
            paragraphs = [_paragraph_for(pkg).dump() for pkg in sorted(packages, key=lambda p: p.name)]
        except (TypeError, ValueError) as e:
            raise MetadataGenError(f"failed to render Packages: {e}") from e
        return "\n".join(paragraphs).encode("utf-8")

    def parse_index(self, content: str) -> list[Package]:
        packages = []
        for pkg_data in deb822.Packages.iter_paragraphs(content, use_apt_pkg=False):
            if "Package" not in pkg_data:
                continue
            pkg = paragraph_to_package(pkg_data)
            packages.append(
                pkg.model_copy(
                    update={
                        "published_path": pkg_data.get("Filename"),
                        "size": int(pkg_data.get("Size", 0)),
                        "md5": pkg_data.get("MD5sum", ""),
                        "sha1": pkg_data.get("SHA1", ""),
                        "sha256": pkg_data.get("SHA256", ""),
                        "sha512": pkg_data.get("SHA512", ""),
                    }
                )
            )
        return packages

    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        dist_dir = repository_root / "dists" / config.codename
        found_index = False
        packages: dict[tuple[str, str, str], Package] = {}

        for component in config.components:
            for arch in config.architectures:
                binary_dir = dist_dir / component / f"binary-{arch}"
                plain = binary_dir / "Packages"
                compressed = binary_dir / "Packages.gz"
                try:
                    if plain.is_file():
                        content = plain.read_text(encoding="utf-8")
                    elif compressed.is_file():
                        with gzip.open(compressed, "rt", encoding="utf-8") as f:
                            content = f.read()
                    else:
                        continue
                    found_index = True
                    parsed = self.parse_index(content)
                except (*ARCHIVE_ERRORS, UnicodeDecodeError) as e:
                    raise ParseError(f"cannot read existing index: {e}", binary_dir) from e

                logger.debug(f"Read {len(parsed)} packages from {binary_dir}")
                for pkg in parsed:
                    # arch "all" packages are listed once per architecture
                    packages.setdefault((pkg.name, pkg.version, pkg.architecture), pkg)

        if not found_index:
            raise MetadataNotFoundError("no Packages index found", dist_dir)
        return list(packages.values())
