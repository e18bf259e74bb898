"""RPM packages and `repodata` (primary.xml / repomd.xml) metadata."""

import gzip
import logging
import re
import struct
import time
import xml.etree.ElementTree as ET
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from repogen.archive import ARCHIVE_ERRORS
from repogen.checksum import sha256_hex
from repogen.codecs.base import PackageCodec
from repogen.codecs.rpmheader import RpmTag, read_package_header, tag_int, tag_list, tag_string
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)

COMMON_NS = "http://linux.duke.edu/metadata/common"
RPM_NS = "http://linux.duke.edu/metadata/rpm"
REPO_NS = "http://linux.duke.edu/metadata/repo"
XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'

# Tried in order, the last one matches any run of digits
DISTRO_VERSION_PATTERNS = [
    re.compile(r"fc(\d+)"),
    re.compile(r"\.fc(\d+)"),
    re.compile(r"el(\d+)"),
    re.compile(r"\.el(\d+)"),
    re.compile(r"\.c(\d+)"),
    re.compile(r"fedora(\d+)", re.IGNORECASE),
    re.compile(r"(\d+)"),
]


def extract_distro_version(value: str) -> str | None:
    """Guess the distribution release from a DISTURL/DISTRIBUTION/DISTTAG string.

    Examples:
        >>> extract_distro_version("https://koji.fedoraproject.org/koji/buildinfo?buildID=1.fc40")
        '40'
        >>> extract_distro_version("Red Hat Enterprise Linux el9")
        '9'
    """
    for pattern in DISTRO_VERSION_PATTERNS:
        if match := pattern.search(value):
            return match.group(1)
    return None


def primary_href(pkg: Package) -> str:
    return f"Packages/{PurePosixPath(pkg.published_path or pkg.basename).name}"


def _sub(parent: ET.Element, tag: str, text: str | None = None, **attrs: str) -> ET.Element:
    elem = ET.SubElement(parent, tag, attrs)
    if text is not None:
        elem.text = text
    return elem


def _package_element(parent: ET.Element, pkg: Package, now: int) -> None:
    elem = _sub(parent, "package", type="rpm")
    _sub(elem, "name", pkg.name)
    _sub(elem, "arch", pkg.architecture)
    _sub(
        elem,
        "version",
        epoch="0",
        ver=pkg.version,
        rel=str(pkg.extras.get("Release", "")),
    )
    _sub(elem, "checksum", pkg.sha256, type="sha256", pkgid="YES")
    _sub(elem, "summary", pkg.description)
    if pkg.maintainer:
        _sub(elem, "packager", pkg.maintainer)
    if pkg.homepage:
        _sub(elem, "url", pkg.homepage)
    _sub(elem, "time", file=str(now), build=str(pkg.extras.get("BuildTime", 0)))
    size = str(pkg.size)
    _sub(elem, "size", package=size, installed=size, archive=size)
    _sub(elem, "location", href=primary_href(pkg))

    fmt = _sub(elem, "format")
    _sub(fmt, "rpm:license", pkg.license)
    _sub(fmt, "rpm:group", str(pkg.extras.get("Group", "")))
    requires = [dep for dep in pkg.dependencies if not dep.startswith("rpmlib(")]
    if requires:
        req_elem = _sub(fmt, "rpm:requires")
        for dep in requires:
            _sub(req_elem, "rpm:entry", name=dep)


def _serialize(root: ET.Element) -> bytes:
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="utf-8") + b"\n"


def write_repomd(
    primary_gz: bytes, primary_checksum: str, open_size: int, revision: int | None = None
) -> bytes:
    """Render repomd.xml pointing at a compressed primary.xml.

    `open-size` is the length of the uncompressed XML. `open-checksum` is the
    SHA256 of the checksum string rather than of that XML, which existing
    consumers of generated repositories expect.
    """
    if revision is None:
        revision = int(time.time())
    root = ET.Element("repomd", {"xmlns": REPO_NS, "xmlns:rpm": RPM_NS})
    _sub(root, "revision", str(revision))
    data = _sub(root, "data", type="primary")
    _sub(data, "checksum", primary_checksum, type="sha256")
    _sub(data, "open-checksum", sha256_hex(primary_checksum), type="sha256")
    _sub(data, "location", href=f"repodata/{primary_checksum}-primary.xml.gz")
    _sub(data, "timestamp", str(revision))
    _sub(data, "size", str(len(primary_gz)))
    _sub(data, "open-size", str(open_size))
    return _serialize(root)


class RpmCodec(PackageCodec):
    package_type = PackageType.RPM

    def parse_package(self, path: Path) -> Package:
        checksum = self.checksum_package_file(path)
        try:
            with path.open("rb") as fh:
                tags = read_package_header(fh)
        except (OSError, ValueError, IndexError, struct.error) as e:
            raise ParseError(f"invalid RPM header: {e}", path) from e

        if not (name := tag_string(tags, RpmTag.NAME)):
            raise ParseError("RPM header has no NAME tag", path)

        extras: dict[str, str | int] = {}
        if release := tag_string(tags, RpmTag.RELEASE):
            extras["Release"] = release
        if group := tag_string(tags, RpmTag.GROUP):
            extras["Group"] = group
        if (build_time := tag_int(tags, RpmTag.BUILDTIME)) is not None:
            extras["BuildTime"] = build_time
        if (installed_size := tag_int(tags, RpmTag.SIZE)) is not None:
            extras["InstalledSize"] = installed_size
        if (epoch := tag_int(tags, RpmTag.EPOCH)) is not None:
            extras["Epoch"] = epoch

        for tag in (RpmTag.DISTURL, RpmTag.DISTRIBUTION, RpmTag.DISTTAG):
            if (hint := tag_string(tags, tag)) and (distro_version := extract_distro_version(hint)):
                extras["DistroVersion"] = distro_version
                break

        pkg = Package(
            name=name,
            version=tag_string(tags, RpmTag.VERSION),
            architecture=tag_string(tags, RpmTag.ARCH),
            description=tag_string(tags, RpmTag.SUMMARY),
            maintainer=tag_string(tags, RpmTag.PACKAGER),
            homepage=tag_string(tags, RpmTag.URL),
            license=tag_string(tags, RpmTag.LICENSE),
            dependencies=list(dict.fromkeys(tag_list(tags, RpmTag.REQUIRENAME))),
            source_path=path,
            extras=extras,
        )
        return checksum.apply_to(pkg)

    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Render an uncompressed primary.xml document."""
        now = int(time.time())
        root = ET.Element(
            "metadata",
            {"xmlns": COMMON_NS, "xmlns:rpm": RPM_NS, "packages": str(len(packages))},
        )
        try:
            for pkg in sorted(packages, key=lambda p: (p.name, p.version)):
                _package_element(root, pkg, now)
            return _serialize(root)
        except (TypeError, ValueError) as e:
            raise MetadataGenError(f"failed to render primary.xml: {e}") from e

    def parse_primary(self, content: bytes, prefix: str) -> list[Package]:
        ns = {"c": COMMON_NS, "rpm": RPM_NS}
        root = ET.fromstring(content)
        packages = []
        for elem in root.findall("c:package", ns):
            version = elem.find("c:version", ns)
            size = elem.find("c:size", ns)
            location = elem.find("c:location", ns)
            time_elem = elem.find("c:time", ns)

            extras: dict[str, str | int] = {}
            if version is not None and (release := version.get("rel")):
                extras["Release"] = release
            if group := elem.findtext("c:format/rpm:group", default="", namespaces=ns):
                extras["Group"] = group
            if time_elem is not None and (build := time_elem.get("build")):
                extras["BuildTime"] = int(build)

            href = location.get("href", "") if location is not None else ""
            packages.append(
                Package(
                    name=elem.findtext("c:name", default="", namespaces=ns),
                    architecture=elem.findtext("c:arch", default="", namespaces=ns),
                    version=version.get("ver", "") if version is not None else "",
                    description=elem.findtext("c:summary", default="", namespaces=ns),
                    maintainer=elem.findtext("c:packager", default="", namespaces=ns),
                    homepage=elem.findtext("c:url", default="", namespaces=ns),
                    license=elem.findtext("c:format/rpm:license", default="", namespaces=ns),
                    dependencies=[
                        entry.get("name", "")
                        for entry in elem.findall("c:format/rpm:requires/rpm:entry", ns)
                    ],
                    sha256=elem.findtext("c:checksum", default="", namespaces=ns),
                    size=int(size.get("package", 0)) if size is not None else 0,
                    published_path=f"{prefix}/{href}",
                    extras=extras,
                )
            )
        return packages

    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        """Read every `<version>/<arch>/repodata` tree under the root."""
        packages: list[Package] = []
        found_index = False
        ns = {"r": REPO_NS}

        candidates = []
        if repository_root.is_dir():
            candidates = sorted(repository_root.glob("*/*/repodata/repomd.xml"))
        for repomd_path in candidates:
            arch_dir = repomd_path.parent.parent
            version_dir = arch_dir.parent
            try:
                repomd = ET.fromstring(repomd_path.read_bytes())
                location = repomd.find("r:data[@type='primary']/r:location", ns)
                if location is None or not (href := location.get("href")):
                    raise ParseError("repomd.xml has no primary location", repomd_path)
                with gzip.open(arch_dir / href, "rb") as f:
                    primary = f.read()
                parsed = self.parse_primary(primary, f"{version_dir.name}/{arch_dir.name}")
            except (*ARCHIVE_ERRORS, ET.ParseError) as e:
                raise ParseError(f"cannot read existing repodata: {e}", repomd_path) from e

            found_index = True
            for pkg in parsed:
                pkg.extras["DistroVersion"] = version_dir.name
            logger.debug(f"Read {len(parsed)} packages from {repomd_path}")
            packages.extend(parsed)

        if not found_index:
            raise MetadataNotFoundError("no repodata found", repository_root)
        return packages
