"""Arch Linux `.pkg.tar.*` packages and pacman sync databases."""

import logging
import re
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
    iter_tar_files,
    open_tar,
)
from repogen.codecs.base import PackageCodec
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)

PACKAGE_SUFFIXES = {
    ".pkg.tar.zst": Compression.ZSTD,
    ".pkg.tar.xz": Compression.XZ,
    ".pkg.tar.gz": Compression.GZIP,
    ".pkg.tar": Compression.NONE,
}

# Discovery order for an already published database
DATABASE_PATTERNS = ["*.db.tar.zst", "*.db.tar.xz", "*.db.tar.gz", "*.db"]

PKGINFO_FIELDS = {
    "pkgname": "name",
    "pkgver": "version",
    "arch": "architecture",
    "pkgdesc": "description",
    "url": "homepage",
    "license": "license",
    "packager": "maintainer",
}
PKGINFO_LISTS = {
    "depend": "dependencies",
    "conflict": "conflicts",
    "group": "groups",
}
DESC_FIELDS = {
    "NAME": "name",
    "VERSION": "version",
    "DESC": "description",
    "ARCH": "architecture",
    "URL": "homepage",
    "LICENSE": "license",
    "PACKAGER": "maintainer",
    "MD5SUM": "md5",
    "SHA256SUM": "sha256",
}
DESC_LISTS = {
    "DEPENDS": "dependencies",
    "CONFLICTS": "conflicts",
    "GROUPS": "groups",
}


def sanitize_repo_name(name: str) -> str:
    """Lowercase a repository name and replace anything outside [a-z0-9-] with '-'."""
    return re.sub(r"[^a-z0-9-]", "-", name.strip().lower().replace(" ", "-"))


def package_compression(filename: str) -> Compression:
    for suffix, compression in PACKAGE_SUFFIXES.items():
        if filename.endswith(suffix):
            return compression
    raise ValueError(f"unsupported pacman package extension: {filename}")


def parse_pkginfo(text: str) -> Package:
    """Parse `.PKGINFO` (`key = value` lines, `#` comments) into a Package."""
    fields: dict = {}
    lists: dict[str, list[str]] = {attr: [] for attr in PKGINFO_LISTS.values()}
    extras: dict[str, str | int] = {}

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key in PKGINFO_FIELDS:
            fields[PKGINFO_FIELDS[key]] = value
        elif key in PKGINFO_LISTS:
            lists[PKGINFO_LISTS[key]].append(value)
        elif key == "builddate":
            extras["BuildDate"] = value
        elif key == "size":
            extras["InstalledSize"] = value
        else:
            extras[key] = value

    if not fields.get("name"):
        raise ValueError(".PKGINFO has no pkgname")
    return Package(**fields, **lists, extras=extras)


def render_desc(pkg: Package) -> str:
    """Render the `desc` file of one package in a sync database."""
    blocks = []

    def field(name: str, value: str | int | None, required: bool = False) -> None:
        if value or required:
            blocks.append(f"%{name}%\n{value or ''}\n")

    def multi(name: str, values: list[str]) -> None:
        if values:
            blocks.append(f"%{name}%\n" + "".join(f"{value}\n" for value in values))

    field("FILENAME", pkg.basename, required=True)
    field("NAME", pkg.name, required=True)
    field("VERSION", pkg.version, required=True)
    field("DESC", pkg.description, required=True)
    multi("GROUPS", pkg.groups)
    field("CSIZE", str(pkg.size), required=True)
    field("ISIZE", pkg.extras.get("InstalledSize"))
    field("MD5SUM", pkg.md5, required=True)
    field("SHA256SUM", pkg.sha256, required=True)
    field("ARCH", pkg.architecture, required=True)
    field("BUILDDATE", pkg.extras.get("BuildDate"))
    field("PACKAGER", pkg.maintainer)
    field("URL", pkg.homepage)
    field("LICENSE", pkg.license)
    multi("DEPENDS", pkg.dependencies)
    multi("CONFLICTS", pkg.conflicts)
    return "\n".join(blocks) + "\n"


def parse_desc(text: str) -> dict[str, list[str]]:
    sections: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        if line.startswith("%") and line.endswith("%") and len(line) > 2:
            current = sections.setdefault(line.strip("%"), [])
        elif not line:
            current = None
        elif current is not None:
            current.append(line)
    return sections


def desc_to_package(sections: dict[str, list[str]], arch_dir: str) -> Package:
    def first(key: str) -> str:
        return sections.get(key, [""])[0] if sections.get(key) else ""

    fields = {attr: first(key) for key, attr in DESC_FIELDS.items()}
    lists = {attr: sections.get(key, []) for key, attr in DESC_LISTS.items()}
    extras: dict[str, str | int] = {}
    if isize := first("ISIZE"):
        extras["InstalledSize"] = isize
    if builddate := first("BUILDDATE"):
        extras["BuildDate"] = builddate

    return Package(
        **fields,
        **lists,
        size=int(first("CSIZE") or 0),
        published_path=f"{arch_dir}/{first('FILENAME')}",
        extras=extras,
    )


class PacmanCodec(PackageCodec):
    package_type = PackageType.PACMAN

    def parse_package(self, path: Path) -> Package:
        checksum = self.checksum_package_file(path)
        try:
            with path.open("rb") as fh, open_tar(fh, package_compression(path.name)) as tar:
                pkginfo = find_tar_member(tar, [".PKGINFO"])
            if pkginfo is None:
                raise ValueError("no .PKGINFO entry")
            pkg = parse_pkginfo(pkginfo.decode("utf-8"))
        except ARCHIVE_ERRORS as e:
            raise ParseError(f"invalid pacman package: {e}", path) from e
        return checksum.apply_to(pkg).model_copy(update={"source_path": path})

    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Build a zstd-compressed sync database with one `desc` per package."""
        entries: list[TarEntry] = []
        try:
            for pkg in sorted(packages, key=lambda p: (p.name, p.version)):
                entry_dir = f"{pkg.name}-{pkg.version}"
                entries.append(TarEntry(f"{entry_dir}/", None, 0o755))
                entries.append(TarEntry(f"{entry_dir}/desc", render_desc(pkg).encode("utf-8"), 0o644))
            return compress(build_tar(entries), Compression.ZSTD)
        except (ValueError, TypeError) as e:
            raise MetadataGenError(f"failed to build pacman database: {e}") from e

    def parse_database(self, data: bytes, compression: Compression, arch_dir: str) -> list[Package]:
        packages = []
        for name, content in iter_tar_files(decompress(data, compression)):
            if not name.endswith("/desc"):
                continue
            packages.append(desc_to_package(parse_desc(content.decode("utf-8")), arch_dir))
        return packages

    def find_database(self, arch_dir: Path) -> Path | None:
        for pattern in DATABASE_PATTERNS:
            if matches := sorted(arch_dir.glob(pattern)):
                return matches[0]
        return None

    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        packages: list[Package] = []
        arch_dirs = []
        if repository_root.is_dir():
            arch_dirs = sorted(p for p in repository_root.iterdir() if p.is_dir())
        found_database = False

        for arch_dir in arch_dirs:
            if (db_path := self.find_database(arch_dir)) is None:
                continue
            found_database = True
            # a bare .db is a copy of the zstd compressed tarball
            compression = Compression.from_name(db_path.name)
            if db_path.suffix == ".db":
                compression = Compression.ZSTD
            try:
                parsed = self.parse_database(db_path.read_bytes(), compression, arch_dir.name)
            except ARCHIVE_ERRORS as e:
                raise ParseError(f"cannot read existing database: {e}", db_path) from e
            logger.debug(f"Read {len(parsed)} packages from {db_path}")
            packages.extend(parsed)

        if not found_database:
            raise MetadataNotFoundError("no pacman database found", repository_root)
        return packages
