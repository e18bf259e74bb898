import logging
from pathlib import Path

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from repogen.errors import SigningError

logger = logging.getLogger(__name__)


class RSASigner:
    """RSA PKCS#1 v1.5 / SHA1 signer, as used for Alpine index signatures.

    Args:
        key_path: PEM private key, PKCS#1 or PKCS#8, optionally encrypted
        passphrase: Passphrase for an encrypted key
    """

    def __init__(self, key_path: Path, passphrase: str | None = None):
        try:
            key_data = key_path.read_bytes()
        except OSError as e:
            raise SigningError(f"cannot read RSA key: {e}", key_path) from e

        password = passphrase.encode("utf-8") if passphrase else None
        try:
            key = serialization.load_pem_private_key(key_data, password=password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningError(f"failed to load RSA private key: {e}", key_path) from e

        if not isinstance(key, rsa.RSAPrivateKey):
            raise SigningError("private key is not an RSA key", key_path)

        self.key_path = key_path
        self._key = key
        logger.debug(f"Loaded {key.key_size}-bit RSA key from {key_path}")

    def sign_rsa(self, data: bytes) -> bytes:
        try:
            return self._key.sign(data, padding.PKCS1v15(), hashes.SHA1())
        except ValueError as e:
            raise SigningError(f"RSA signing failed: {e}", self.key_path) from e

    def get_public_key(self) -> bytes:
        """PEM-encoded SubjectPublicKeyInfo for the signing key."""
        return self._key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
