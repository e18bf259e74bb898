"""Expose data models."""

from .config import DistroVariant, RepositoryConfig
from .package import Package, PackageType

__all__ = [
    "DistroVariant",
    "Package",
    "PackageType",
    "RepositoryConfig",
]
