#!/usr/bin/env python3
# /// script
# requires-python = ">=3.12"
# dependencies = ["cryptography>=42", "python-gnupg>=0.5.1"]
# ///
import tempfile
from argparse import ArgumentParser
from enum import StrEnum
from pathlib import Path

import gnupg
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


class KeyType(StrEnum):
    RSA = "rsa"
    GPG = "gpg"


parser = ArgumentParser(
    prog="genkeys",
    description="Generate a signing key for repogen.",
)
parser.add_argument(
    "-t",
    "--type",
    type=KeyType,
    choices=list(KeyType),
    default=KeyType.GPG,
    help="Key to generate: gpg for apt/dnf/pacman, rsa for Alpine. (default: gpg)",
    dest="key_type",
)
parser.add_argument(
    "-o",
    "--out",
    type=Path,
    required=True,
    help="Private key output path. The public key is written next to it with a .pub suffix.",
    dest="output",
)
parser.add_argument(
    "-n",
    "--name",
    type=str,
    default="Repogen Signing Key",
    help="User ID name for GPG keys. (default: Repogen Signing Key)",
    dest="name",
)
parser.add_argument(
    "-e",
    "--email",
    type=str,
    default="repogen@localhost",
    help="User ID email for GPG keys.",
    dest="email",
)
parser.add_argument(
    "-p",
    "--passphrase",
    type=str,
    default=None,
    help="Protect the private key with this passphrase.",
    dest="passphrase",
)
parser.add_argument(
    "-b",
    "--bits",
    type=int,
    default=4096,
    help="RSA key size in bits. (default: 4096)",
    dest="bits",
)


def generate_rsa(bits: int, passphrase: str | None) -> tuple[bytes, bytes]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=bits)
    if passphrase:
        encryption = serialization.BestAvailableEncryption(passphrase.encode("utf-8"))
    else:
        encryption = serialization.NoEncryption()
    private = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )
    public = key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private, public


def generate_gpg(bits: int, name: str, email: str, passphrase: str | None) -> tuple[bytes, bytes]:
    with tempfile.TemporaryDirectory(prefix="genkeys-") as home:
        gpg = gnupg.GPG(gnupghome=home)
        if passphrase:
            protection = {"passphrase": passphrase}
        else:
            protection = {"no_protection": True}
        key_input = gpg.gen_key_input(
            key_type="RSA",
            key_length=bits,
            name_real=name,
            name_email=email,
            **protection,
        )
        key = gpg.gen_key(key_input)
        if not key.fingerprint:
            raise RuntimeError(f"gpg key generation failed: {key.stderr}")

        if passphrase:
            private = gpg.export_keys(key.fingerprint, secret=True, armor=True, passphrase=passphrase)
        else:
            private = gpg.export_keys(key.fingerprint, secret=True, armor=True, expect_passphrase=False)
        public = gpg.export_keys(key.fingerprint, armor=True)
    return private.encode("ascii"), public.encode("ascii")


def main() -> None:
    args = parser.parse_args()
    key_type: KeyType = args.key_type
    out_path: Path = args.output
    pub_path = out_path.with_name(out_path.name + ".pub")

    for path in (out_path, pub_path):
        if path.exists():
            raise FileExistsError(f"Output path {path} already exists, will not overwrite.")

    match key_type:
        case KeyType.RSA:
            private, public = generate_rsa(args.bits, args.passphrase)
        case KeyType.GPG:
            private, public = generate_gpg(args.bits, args.name, args.email, args.passphrase)
        case _:
            raise ValueError(f"Unknown or unsupported key type: {key_type}")

    out_path.write_bytes(private)
    out_path.chmod(0o600)
    pub_path.write_bytes(public)
    print(f"Wrote {key_type} private key to {out_path} and public key to {pub_path}")


if __name__ == "__main__":
    main()
