"""Shared fixtures that build real package files on the fly."""

import gzip
import io
import lzma
import shutil
import struct
import tarfile
from pathlib import Path
from typing import NamedTuple

import gnupg
import pytest
import zstandard
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from repogen.models import RepositoryConfig


def make_tar(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def compress_as(data: bytes, suffix: str) -> bytes:
    match suffix:
        case "gz":
            return gzip.compress(data)
        case "xz":
            return lzma.compress(data)
        case "zst":
            return zstandard.ZstdCompressor().compress(data)
        case "":
            return data
        case _:
            raise ValueError(suffix)


def make_ar(members: list[tuple[str, bytes]]) -> bytes:
    out = bytearray(b"!<arch>\n")
    for name, data in members:
        header = f"{name + '/':<16}{0:<12}{0:<6}{0:<6}{100644:<8}{len(data):<10}`\n"
        assert len(header) == 60
        out += header.encode("ascii") + data
        if len(data) % 2:
            out += b"\n"
    return bytes(out)


RPM_STRING = 6
RPM_INT32 = 4
RPM_STRING_ARRAY = 8
RPM_I18NSTRING = 9

DEFAULT_REQUIRES = ["glibc", "rpmlib(CompressedFileNames)"]


def make_rpm_header(entries: list[tuple[int, int, object]]) -> bytes:
    index = bytearray()
    store = bytearray()
    for tag, tag_type, value in entries:
        if tag_type == RPM_INT32:
            store += b"\x00" * (-len(store) % 4)
            offset = len(store)
            values = list(value)
            store += struct.pack(f">{len(values)}I", *values)
            count = len(values)
        elif tag_type == RPM_STRING:
            offset = len(store)
            store += str(value).encode() + b"\x00"
            count = 1
        else:
            offset = len(store)
            for item in value:
                store += item.encode() + b"\x00"
            count = len(value)
        index += struct.pack(">IIII", tag, tag_type, offset, count)
    intro = b"\x8e\xad\xe8\x01" + b"\x00" * 4 + struct.pack(">II", len(entries), len(store))
    return intro + bytes(index) + bytes(store)


class GpgKeys(NamedTuple):
    secret_key: Path
    public_key: str
    fingerprint: str


@pytest.fixture
def make_deb(tmp_path):
    def _make(
        name: str = "foo",
        version: str = "1.0",
        arch: str = "amd64",
        fields: dict[str, str] | None = None,
        compression: str = "gz",
        directory: Path | None = None,
        control_name: str = "./control",
    ) -> Path:
        control = {"Package": name, "Version": version, "Architecture": arch, **(fields or {})}
        control_text = "".join(f"{key}: {value}\n" for key, value in control.items())
        control_tar = compress_as(make_tar({control_name: control_text.encode()}), compression)
        member = "control.tar" + (f".{compression}" if compression else "")
        deb = make_ar(
            [
                ("debian-binary", b"2.0\n"),
                (member, control_tar),
                ("data.tar.gz", gzip.compress(make_tar({"./usr/bin/" + name: b"#!/bin/sh\n"}))),
            ]
        )
        target_dir = directory or tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}_{version}_{arch}.deb"
        path.write_bytes(deb)
        return path

    return _make


@pytest.fixture
def make_rpm(tmp_path):
    def _make(
        name: str = "hello",
        version: str = "2.10",
        release: str = "1.fc40",
        arch: str = "x86_64",
        disttag: str | None = None,
        requires: list[str] | None = None,
        extra: list[tuple[int, int, object]] | None = None,
        directory: Path | None = None,
    ) -> Path:
        entries: list[tuple[int, int, object]] = [
            (1000, RPM_STRING, name),
            (1001, RPM_STRING, version),
            (1002, RPM_STRING, release),
            (1004, RPM_I18NSTRING, ["A friendly greeting"]),
            (1006, RPM_INT32, [1700000000]),
            (1009, RPM_INT32, [4096]),
            (1014, RPM_STRING, "GPL-3.0-or-later"),
            (1015, RPM_STRING, "Packager <pkg@example.com>"),
            (1016, RPM_I18NSTRING, ["Applications/Text"]),
            (1020, RPM_STRING, "https://www.gnu.org/software/hello/"),
            (1022, RPM_STRING, arch),
            (1049, RPM_STRING_ARRAY, requires if requires is not None else DEFAULT_REQUIRES),
        ]
        if disttag is not None:
            entries.append((1155, RPM_STRING, disttag))
        entries += extra or []

        lead = b"\xed\xab\xee\xdb\x03\x00" + b"\x00" * 90
        signature = make_rpm_header([(1000, RPM_INT32, [1234])])
        signature += b"\x00" * (-len(signature) % 8)
        data = lead + signature + make_rpm_header(entries) + b"payload"

        target_dir = directory or tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}-{version}-{release}.{arch}.rpm"
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def make_apk(tmp_path):
    def _make(
        name: str = "busybox",
        version: str = "1.36.1-r5",
        arch: str = "x86_64",
        depends: list[str] | None = None,
        extra_lines: list[str] | None = None,
        directory: Path | None = None,
    ) -> Path:
        lines = [
            "# Generated by abuild",
            f"pkgname = {name}",
            f"pkgver = {version}",
            "pkgdesc = Size optimized toolbox",
            "url = https://busybox.net/",
            "builddate = 1700000000",
            "size = 958464",
            f"arch = {arch}",
            "license = GPL-2.0-only",
            *(f"depend = {dep}" for dep in (depends or [])),
            *(extra_lines or []),
        ]
        pkginfo = ("\n".join(lines) + "\n").encode()
        data = gzip.compress(make_tar({".PKGINFO": pkginfo, "bin/busybox": b"\x7fELF"}))
        target_dir = directory or tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}-{version}.apk"
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def make_pacman(tmp_path):
    def _make(
        name: str = "pkga",
        version: str = "1.0-1",
        arch: str = "x86_64",
        compression: str = "zst",
        depends: list[str] | None = None,
        directory: Path | None = None,
    ) -> Path:
        lines = [
            "# Generated by makepkg",
            f"pkgname = {name}",
            f"pkgver = {version}",
            "pkgdesc = Package A",
            "url = https://example.org/pkga",
            "builddate = 1700000000",
            "packager = Arch Packager <arch@example.org>",
            "size = 20480",
            f"arch = {arch}",
            "license = MIT",
            "group = base-devel",
            "conflict = pkga-git",
            *(f"depend = {dep}" for dep in (depends if depends is not None else ["glibc", "zlib"])),
        ]
        pkginfo = ("\n".join(lines) + "\n").encode()
        suffix = f".{compression}" if compression else ""
        data = compress_as(make_tar({".PKGINFO": pkginfo, "usr/bin/" + name: b"\x7fELF"}), compression)
        target_dir = directory or tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}-{version}-{arch}.pkg.tar{suffix}"
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def make_bottle(tmp_path):
    def _make(
        name: str = "jq",
        version: str = "1.7.1",
        platform: str = "arm64_sonoma",
        directory: Path | None = None,
    ) -> Path:
        data = gzip.compress(make_tar({f"{name}/{version}/bin/{name}": platform.encode()}))
        target_dir = directory or tmp_path / "input"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / f"{name}--{version}.{platform}.bottle.tar.gz"
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> RepositoryConfig:
        settings = {"input_dir": tmp_path / "input", "output_dir": tmp_path / "repo", **overrides}
        return RepositoryConfig(**settings)

    return _make


@pytest.fixture(scope="session")
def rsa_private_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def rsa_key_file(tmp_path, rsa_private_key) -> Path:
    path = tmp_path / "keys" / "alpine.rsa"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(
        rsa_private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return path


@pytest.fixture(scope="session")
def gpg_keys(tmp_path_factory) -> GpgKeys:
    if shutil.which("gpg") is None:
        pytest.skip("gpg binary not available")

    home = tmp_path_factory.mktemp("gnupg")
    gpg = gnupg.GPG(gnupghome=str(home))
    key_input = gpg.gen_key_input(
        key_type="RSA",
        key_length=2048,
        name_real="Repogen Test",
        name_email="repogen-test@example.com",
        no_protection=True,
    )
    key = gpg.gen_key(key_input)
    if not key.fingerprint:
        pytest.skip(f"gpg key generation failed: {key.stderr}")

    secret = gpg.export_keys(key.fingerprint, secret=True, armor=True, expect_passphrase=False)
    public = gpg.export_keys(key.fingerprint, armor=True)
    key_path = tmp_path_factory.mktemp("keys") / "signing-key.asc"
    key_path.write_text(secret)
    return GpgKeys(key_path, public, key.fingerprint)


@pytest.fixture
def gpg_verifier(gpg_keys, tmp_path_factory) -> gnupg.GPG:
    """A separate keyring holding only the public half of the test key."""
    verifier = gnupg.GPG(gnupghome=str(tmp_path_factory.mktemp("verify")))
    verifier.import_keys(gpg_keys.public_key)
    return verifier
