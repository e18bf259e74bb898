"""OpenPGP signing through GnuPG.

The configured key is imported into a throwaway keyring so the user's own
~/.gnupg is never touched. All signatures use a SHA512 digest.
"""

import logging
import tempfile
from pathlib import Path

import gnupg

from repogen.errors import SigningError

logger = logging.getLogger(__name__)

DIGEST_ARGS = ["--digest-algo", "SHA512"]
CLEARTEXT_HEADER = b"-----BEGIN PGP SIGNED MESSAGE-----"
SIGNATURE_HEADER = b"-----BEGIN PGP SIGNATURE-----"


class GPGSigner:
    """Produces cleartext and detached OpenPGP signatures with a single secret key.

    Args:
        key_path: Armored or binary OpenPGP secret key
        passphrase: Passphrase protecting the key, if any
        gpg_binary: GnuPG executable to run

    Raises:
        SigningError: If GnuPG is unavailable or the key cannot be imported
    """

    def __init__(self, key_path: Path, passphrase: str | None = None, gpg_binary: str = "gpg"):
        self.key_path = key_path
        self.passphrase = passphrase or None
        self._home = tempfile.TemporaryDirectory(prefix="repogen-gnupg-", ignore_cleanup_errors=True)

        try:
            self.gpg = gnupg.GPG(gnupghome=self._home.name, gpgbinary=gpg_binary)
        except (OSError, ValueError, RuntimeError) as e:
            self.close()
            raise SigningError(f"GnuPG is not available: {e}", key_path) from e

        try:
            key_data = key_path.read_bytes()
        except OSError as e:
            self.close()
            raise SigningError(f"cannot read GPG key: {e}", key_path) from e

        if self.passphrase:
            result = self.gpg.import_keys(key_data, passphrase=self.passphrase)
        else:
            result = self.gpg.import_keys(key_data)

        secret_keys = self.gpg.list_keys(secret=True)
        if not secret_keys:
            self.close()
            raise SigningError(f"no secret key found in key file ({result.summary()})", key_path)

        self.fingerprint: str = secret_keys[0]["fingerprint"]
        logger.debug(f"Imported GPG key {self.fingerprint} from {key_path}")

    def __enter__(self) -> "GPGSigner":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._home.cleanup()

    def _sign(self, data: bytes, **kwargs) -> bytes:
        result = self.gpg.sign(
            data,
            keyid=self.fingerprint,
            passphrase=self.passphrase,
            extra_args=DIGEST_ARGS,
            **kwargs,
        )
        if not result.data:
            detail = result.status or (result.stderr or "").strip() or "unknown error"
            raise SigningError(f"gpg signing failed: {detail}", self.key_path)
        return result.data

    def sign_cleartext(self, data: bytes) -> bytes:
        """Wrap `data` in a cleartext-signed message (for InRelease).

        gpg dash-escapes lines starting with `-` and hashes lines without their
        trailing whitespace, as RFC 4880 section 7.1 requires.
        """
        signed = self._sign(data, clearsign=True)
        if not signed.startswith(CLEARTEXT_HEADER) or SIGNATURE_HEADER not in signed:
            raise SigningError("gpg did not produce a cleartext signature", self.key_path)
        return signed

    def sign_detached(self, data: bytes) -> bytes:
        """ASCII-armored detached signature (Release.gpg, repomd.xml.asc)."""
        return self._sign(data, clearsign=False, detach=True)

    def sign_detached_binary(self, data: bytes) -> bytes:
        """Binary detached signature (pacman `.sig` files)."""
        return self._sign(data, clearsign=False, detach=True, binary=True)

    def get_public_key(self) -> bytes:
        exported = self.gpg.export_keys(self.fingerprint, armor=True)
        if not exported:
            raise SigningError("failed to export public key", self.key_path)
        return exported.encode("ascii") if isinstance(exported, str) else exported
