"""Homebrew bottles and tap formulas."""

import logging
import re
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from repogen.codecs.base import PackageCodec
from repogen.errors import MetadataGenError, MetadataNotFoundError, ParseError
from repogen.models import Package, PackageType, RepositoryConfig

logger = logging.getLogger(__name__)

BOTTLE_PATTERN = re.compile(
    r"^(?P<name>.+?)--(?P<version>.+)\.(?P<platform>[^.]+)\.bottle(?:\.(?P<rebuild>\d+))?\.tar(?:\.gz)?$"
)
FORMULA_FIELD_PATTERNS = {
    "version": re.compile(r'^\s*version\s+"([^"]*)"', re.MULTILINE),
    "desc": re.compile(r'^\s*desc\s+"([^"]*)"', re.MULTILINE),
    "homepage": re.compile(r'^\s*homepage\s+"([^"]*)"', re.MULTILINE),
}
FORMULA_BOTTLE_PATTERN = re.compile(r'^\s*url\s+"([^"]+)"\s*\n\s*sha256\s+"([0-9a-f]+)"', re.MULTILINE)

DEFAULT_HOMEPAGE = "https://example.com"
DEFAULT_VERSION = "1.0.0"


def parse_bottle_filename(filename: str) -> dict[str, str]:
    """Split `<name>--<version>.<platform>.bottle[.<n>].tar[.gz]` into its parts.

    Examples:
        >>> parse_bottle_filename("jq--1.7.1.arm64_sonoma.bottle.tar.gz")
        {'name': 'jq', 'version': '1.7.1', 'platform': 'arm64_sonoma'}
    """
    if not (match := BOTTLE_PATTERN.match(filename)):
        raise ValueError(f"not a bottle filename: {filename}")
    return {key: match.group(key) for key in ("name", "version", "platform")}


def to_class_name(name: str) -> str:
    return "".join(word.capitalize() for word in re.split(r"[-_\s]+", name) if word)


class HomebrewCodec(PackageCodec):
    package_type = PackageType.HOMEBREW

    def __init__(self, base_url: str | None = None):
        self.base_url = base_url.rstrip("/") if base_url else None

    def bottle_url(self, pkg: Package) -> str:
        if self.base_url:
            return f"{self.base_url}/bottles/{pkg.basename}"
        return f"bottles/{pkg.basename}"

    def parse_package(self, path: Path) -> Package:
        checksum = self.checksum_package_file(path)
        try:
            parts = parse_bottle_filename(path.name)
        except ValueError as e:
            raise ParseError(str(e), path) from e
        pkg = Package(
            name=parts["name"],
            version=parts["version"],
            architecture=parts["platform"],
            source_path=path,
        )
        return checksum.apply_to(pkg)

    def write_index(self, packages: Sequence[Package]) -> bytes:
        """Render the Ruby formula for the bottles of a single package."""
        if not packages:
            raise MetadataGenError("cannot render a formula without bottles")
        first = packages[0]
        name = first.name
        desc = first.description or f"{name} package"
        homepage = first.homepage or DEFAULT_HOMEPAGE
        version = first.version or DEFAULT_VERSION

        macos = [pkg for pkg in packages if "linux" not in pkg.architecture]
        linux = [pkg for pkg in packages if "linux" in pkg.architecture]

        lines = [
            f"class {to_class_name(name)} < Formula",
            f'  desc "{desc}"',
            f'  homepage "{homepage}"',
            f'  version "{version}"',
            "",
        ]

        if macos:
            arm = next((pkg for pkg in macos if pkg.architecture.startswith("arm64")), None)
            intel = next((pkg for pkg in macos if not pkg.architecture.startswith("arm64")), None)
            lines.append("  on_macos do")
            if arm is not None:
                lines += [
                    "    if Hardware::CPU.arm?",
                    f'      url "{self.bottle_url(arm)}"',
                    f'      sha256 "{arm.sha256}"',
                    "    end",
                ]
            if intel is not None:
                lines += [
                    "    if Hardware::CPU.intel?",
                    f'      url "{self.bottle_url(intel)}"',
                    f'      sha256 "{intel.sha256}"',
                    "    end",
                ]
            lines.append("  end")

        if linux:
            if macos:
                lines.append("")
            lines += [
                "  on_linux do",
                f'    url "{self.bottle_url(linux[0])}"',
                f'    sha256 "{linux[0].sha256}"',
                "  end",
            ]

        lines.append("end")
        return ("\n".join(lines) + "\n").encode("utf-8")

    def parse_formula(self, text: str, formula_name: str) -> list[Package]:
        fields = {
            key: (m.group(1) if (m := pattern.search(text)) else "")
            for key, pattern in FORMULA_FIELD_PATTERNS.items()
        }
        packages = []
        for url, sha256 in FORMULA_BOTTLE_PATTERN.findall(text):
            filename = PurePosixPath(url).name
            try:
                parts = parse_bottle_filename(filename)
            except ValueError:
                logger.warning(f"Skipping unrecognised bottle URL in {formula_name}.rb: {url}")
                continue
            packages.append(
                Package(
                    name=formula_name,
                    version=fields["version"] or parts["version"],
                    architecture=parts["platform"],
                    description=fields["desc"],
                    homepage=fields["homepage"],
                    sha256=sha256,
                    published_path=f"bottles/{filename}",
                )
            )
        return packages

    def parse_existing_index(self, repository_root: Path, config: RepositoryConfig) -> list[Package]:
        formula_dir = repository_root / "Formula"
        formulas = sorted(formula_dir.glob("*.rb")) if formula_dir.is_dir() else []
        if not formulas:
            raise MetadataNotFoundError("no formulas found", formula_dir)

        packages: list[Package] = []
        for formula in formulas:
            try:
                text = formula.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise ParseError(f"cannot read formula: {e}", formula) from e
            packages.extend(self.parse_formula(text, formula.stem))
        return packages
