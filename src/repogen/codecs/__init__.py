"""Per-ecosystem package readers and index writers."""

from repogen.models import PackageType, RepositoryConfig

from .apk import ApkCodec
from .base import PackageCodec
from .deb import DebCodec
from .homebrew import HomebrewCodec
from .pacman import PacmanCodec
from .rpm import RpmCodec


def get_codec(package_type: PackageType, config: RepositoryConfig | None = None) -> PackageCodec:
    match package_type:
        case PackageType.DEB:
            return DebCodec()
        case PackageType.RPM:
            return RpmCodec()
        case PackageType.APK:
            return ApkCodec()
        case PackageType.PACMAN:
            return PacmanCodec()
        case PackageType.HOMEBREW:
            return HomebrewCodec(config.base_url if config else None)
        case _:
            raise ValueError(f"Unknown or unsupported package type: {package_type}")


__all__ = [
    "ApkCodec",
    "DebCodec",
    "HomebrewCodec",
    "PackageCodec",
    "PacmanCodec",
    "RpmCodec",
    "get_codec",
]
