"""Repository generators, one per package ecosystem."""

import threading

from repogen.models import PackageType, RepositoryConfig
from repogen.signing import SigningMode

from .apk import ApkGenerator
from .base import RepositoryGenerator
from .deb import DebGenerator
from .homebrew import HomebrewGenerator
from .pacman import PacmanGenerator
from .rpm import RpmGenerator


def get_generator(
    package_type: PackageType,
    config: RepositoryConfig,
    signing: SigningMode | None = None,
    cancel: threading.Event | None = None,
) -> RepositoryGenerator:
    match package_type:
        case PackageType.DEB:
            cls = DebGenerator
        case PackageType.RPM:
            cls = RpmGenerator
        case PackageType.APK:
            cls = ApkGenerator
        case PackageType.PACMAN:
            cls = PacmanGenerator
        case PackageType.HOMEBREW:
            cls = HomebrewGenerator
        case _:
            raise ValueError(f"Unknown or unsupported package type: {package_type}")
    return cls(config, signing, cancel)


__all__ = [
    "ApkGenerator",
    "DebGenerator",
    "HomebrewGenerator",
    "PacmanGenerator",
    "RepositoryGenerator",
    "RpmGenerator",
    "get_generator",
]
