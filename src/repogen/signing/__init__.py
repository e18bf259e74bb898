"""Signing configuration passed to the repository generators.

Unsigned output is a distinct mode rather than a missing signer, so every
generator has to handle it explicitly.
"""

from dataclasses import dataclass

from .gpg import GPGSigner
from .rsa import RSASigner


@dataclass(frozen=True)
class Unsigned:
    pass


@dataclass(frozen=True)
class GpgSigning:
    signer: GPGSigner


@dataclass(frozen=True)
class RsaSigning:
    signer: RSASigner
    key_name: str


type SigningMode = Unsigned | GpgSigning | RsaSigning

__all__ = [
    "GPGSigner",
    "GpgSigning",
    "RSASigner",
    "RsaSigning",
    "SigningMode",
    "Unsigned",
]
