"""Alpine `.apk` packages and `APKINDEX.tar.gz` indexes."""

import base64
import binascii
import logging
from collections.abc import Sequence
from pathlib import Path

from repogen.archive import (
    ARCHIVE_ERRORS,
    Compression,
    TarEntry,
    build_tar,
    compress,
    decompress,
    find_tar_member,
    open_tar,
    read_tar_member,
)
from repogen.codecs.base import PackageCodec
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)

APKINDEX_ARCHIVE = "APKINDEX.tar.gz"

PKGINFO_FIELDS = {
    "pkgname": "name",
    "pkgver": "version",
    "arch": "architecture",
    "pkgdesc": "description",
    "url": "homepage",
    "license": "license",
    "maintainer": "maintainer",
}


def encode_apk_checksum(sha1_hex: str) -> str:
    """Encode a hex SHA1 digest as an APKINDEX `C:` value (`Q1` + base64 of the raw bytes)."""
    return "Q1" + base64.b64encode(bytes.fromhex(sha1_hex)).decode("ascii")


def decode_apk_checksum(value: str) -> str:
    if not value.startswith("Q1"):
        return ""
    return base64.b64decode(value[2:]).hex()


def parse_pkginfo(text: str) -> Package:
    """Parse `.PKGINFO` (`key = value` lines) into a Package."""
    fields: dict = {}
    dependencies: list[str] = []
    extras: dict[str, str | int] = {}

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(" = ")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key in PKGINFO_FIELDS:
            fields[PKGINFO_FIELDS[key]] = value
        elif key == "depend":
            dependencies.append(value)
        elif key == "size":
            extras["installed_size"] = int(value)
        else:
            extras[key] = value

    if not fields.get("name"):
        raise ValueError(".PKGINFO has no pkgname")
    return Package(**fields, dependencies=dependencies, extras=extras)


def render_apkindex(packages: Sequence[Package]) -> str:
    records = []
    for pkg in packages:
        lines = [
            f"C:{encode_apk_checksum(pkg.sha1)}",
            f"P:{pkg.name}",
            f"V:{pkg.version}",
            f"A:{pkg.architecture}",
            f"S:{pkg.size}",
        ]
        if (installed_size := pkg.extras.get("installed_size")) is not None:
            lines.append(f"I:{installed_size}")
        if pkg.description:
            lines.append(f"T:{pkg.description}")
        if pkg.homepage:
            lines.append(f"U:{pkg.homepage}")
        if pkg.license:
            lines.append(f"L:{pkg.license}")
        if pkg.dependencies:
            lines.append(f"D:{' '.join(pkg.dependencies)}")
        records.append("\n".join(lines) + "\n")
    return "\n".join(records)


def parse_apkindex(text: str, arch_dir: str) -> list[Package]:
    packages = []
    for record in text.split("\n\n"):
        fields: dict[str, str] = {}
        for line in record.splitlines():
            key, sep, value = line.partition(":")
            if sep and len(key) == 1:
                fields[key] = value
        if "P" not in fields:
            continue

        extras: dict[str, str | int] = {}
        if "I" in fields:
            extras["installed_size"] = int(fields["I"])
        name, version = fields["P"], fields.get("V", "")
        packages.append(
            Package(
                name=name,
                version=version,
                architecture=fields.get("A", ""),
                description=fields.get("T", ""),
                homepage=fields.get("U", ""),
                license=fields.get("L", ""),
                dependencies=fields.get("D", "").split(),
                size=int(fields.get("S", 0)),
                sha1=decode_apk_checksum(fields.get("C", "")),
                published_path=f"{arch_dir}/{name}-{version}.apk",
                extras=extras,
            )
        )
    return packages


class ApkCodec(PackageCodec):
    package_type = PackageType.APK

    def parse_package(self, path: Path) -> Package:
        checksum = self.checksum_package_file(path)
        try:
            with path.open("rb") as fh, open_tar(fh, Compression.GZIP) as tar:
                pkginfo = find_tar_member(tar, [".PKGINFO"])
            if pkginfo is None:
                raise ValueError("no .PKGINFO entry")
            pkg = parse_pkginfo(pkginfo.decode("utf-8"))
        except ARCHIVE_ERRORS as e:
            raise ParseError(f"invalid Alpine package: {e}", path) from e
        return checksum.apply_to(pkg).model_copy(update={"source_path": path})

    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Build the gzip-compressed APKINDEX archive for one architecture."""
        arch = packages[0].architecture if packages else ""
        try:
            index = render_apkindex(packages).encode("utf-8")
            description = f"Alpine Package Index for {arch}".encode("utf-8")
            archive = build_tar([TarEntry("DESCRIPTION", description), TarEntry("APKINDEX", index)])
        except (ValueError, TypeError) as e:
            raise MetadataGenError(f"failed to build APKINDEX: {e}", arch or None) from e
        return compress(archive, Compression.GZIP)

    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        packages: list[Package] = []
        indexes = sorted(repository_root.glob(f"*/{APKINDEX_ARCHIVE}")) if repository_root.is_dir() else []
        if not indexes:
            raise MetadataNotFoundError("no APKINDEX found", repository_root)

        for index_path in indexes:
            try:
                content = read_tar_member(decompress(index_path.read_bytes(), Compression.GZIP), ["APKINDEX"])
                if content is None:
                    raise ValueError("archive has no APKINDEX entry")
                parsed = parse_apkindex(content.decode("utf-8"), index_path.parent.name)
            except (*ARCHIVE_ERRORS, binascii.Error) as e:
                raise ParseError(f"cannot read existing index: {e}", index_path) from e
            logger.debug(f"Read {len(parsed)} packages from {index_path}")
            packages.extend(parsed)
        return packages
