from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, Field

type OptionalStr = str | None


class PackageType(StrEnum):
    """Package ecosystems the generator knows how to publish."""

    DEB = "deb"
    RPM = "rpm"
    APK = "apk"
    PACMAN = "pacman"
    HOMEBREW = "homebrew"


class Package(BaseModel):
    """Ecosystem-agnostic record for a single package.

    `source_path` is where the package file was found by the scanner and is
    unset for records rebuilt from an existing index. `published_path` is the
    location relative to the repository root, set once the package has been
    laid out in (or re-read from) a generated repository.
    """

    name: str
    version: str = ""
    architecture: str = ""
    description: str = ""
    maintainer: str = ""
    homepage: str = ""
    license: str = ""
    dependencies: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)
    groups: list[str] = Field(default_factory=list)
    source_path: Path | None = None
    published_path: OptionalStr = None
    size: int = 0
    md5: str = ""
    sha1: str = ""
    sha256: str = ""
    sha512: str = ""
    extras: dict[str, str | int] = Field(default_factory=dict)

    @property
    def basename(self) -> str:
        """File name of the package, from whichever path is known."""
        if self.source_path is not None:
            return self.source_path.name
        if self.published_path:
            return Path(self.published_path).name
        return ""
