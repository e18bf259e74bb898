"""Error taxonomy shared by the codecs, signers and generators."""

from collections.abc import Sequence
from enum import StrEnum
from pathlib import Path
from typing import ClassVar


class ErrorType(StrEnum):
    PACKAGE_PARSE = "PackageParse"
    METADATA_GEN = "MetadataGen"
    SIGNING = "Signing"
    FILE_OP = "FileOp"
    CONFLICT = "Conflict"
    INVALID_CONFIG = "InvalidConfig"
    NOT_FOUND = "NotFound"
    CANCELLED = "Cancelled"


class RepoGenError(Exception):
    """Base class for all errors raised while generating a repository.

    Args:
        message: Human readable description of what went wrong
        package: The offending package name or file path, if any
    """

    error_type: ClassVar[ErrorType]

    def __init__(self, message: str, package: str | Path | None = None):
        super().__init__(message)
        self.message = message
        self.package = str(package) if package is not None else None

    def __str__(self) -> str:
        if self.package:
            return f"[{self.error_type}] {self.package}: {self.message}"
        return f"[{self.error_type}] {self.message}"


class ParseError(RepoGenError):
    """A package container or index could not be read."""

    error_type = ErrorType.PACKAGE_PARSE


class MetadataGenError(RepoGenError):
    """An index file could not be serialized."""

    error_type = ErrorType.METADATA_GEN


class SigningError(RepoGenError):
    """A key could not be loaded or a signature could not be produced."""

    error_type = ErrorType.SIGNING


class FileOpError(RepoGenError):
    """Copying or writing an output file failed."""

    error_type = ErrorType.FILE_OP


class InvalidConfigError(RepoGenError):
    error_type = ErrorType.INVALID_CONFIG


class ConflictError(RepoGenError):
    """Incoming packages collide with already published ones."""

    error_type = ErrorType.CONFLICT

    def __init__(self, identities: Sequence[str]):
        self.identities = list(identities)
        joined = ", ".join(self.identities)
        super().__init__(
            f"package identity already exists in repository: {joined} "
            "(bump the version or remove the published package first)"
        )


class MetadataNotFoundError(RepoGenError):
    """No usable index exists yet; incremental mode falls back to a full run."""

    error_type = ErrorType.NOT_FOUND


class GenerationCancelled(RepoGenError):
    error_type = ErrorType.CANCELLED
