import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding

from repogen.errors import SigningError
from repogen.signing import GPGSigner, RSASigner


class TestRSASigner:
    def test_signature_verifies_with_sha1_pkcs1v15(self, rsa_key_file, rsa_private_key):
        signer = RSASigner(rsa_key_file)

        signature = signer.sign_rsa(b"APKINDEX contents")

        public_key = rsa_private_key.public_key()
        public_key.verify(signature, b"APKINDEX contents", padding.PKCS1v15(), hashes.SHA1())
        with pytest.raises(InvalidSignature):
            public_key.verify(signature, b"tampered", padding.PKCS1v15(), hashes.SHA1())

    def test_public_key_pem(self, rsa_key_file, rsa_private_key):
        pem = RSASigner(rsa_key_file).get_public_key()

        assert pem.startswith(b"-----BEGIN PUBLIC KEY-----")
        loaded = serialization.load_pem_public_key(pem)
        assert loaded.public_numbers() == rsa_private_key.public_key().public_numbers()

    def test_encrypted_pkcs1_key(self, tmp_path, rsa_private_key):
        path = tmp_path / "encrypted.rsa"
        path.write_bytes(
            rsa_private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.BestAvailableEncryption(b"hunter2"),
            )
        )

        assert len(RSASigner(path, "hunter2").sign_rsa(b"data")) == 256
        with pytest.raises(SigningError):
            RSASigner(path, "wrong")
        with pytest.raises(SigningError):
            RSASigner(path)

    def test_rejects_non_rsa_key(self, tmp_path):
        path = tmp_path / "ec.pem"
        path.write_bytes(
            ec.generate_private_key(ec.SECP256R1()).private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )

        with pytest.raises(SigningError, match="not an RSA key"):
            RSASigner(path)

    def test_missing_key_file(self, tmp_path):
        with pytest.raises(SigningError) as exc_info:
            RSASigner(tmp_path / "absent.rsa")
        assert str(exc_info.value).startswith("[Signing]")


class TestGPGSigner:
    def test_cleartext_signature(self, gpg_keys, gpg_verifier):
        with GPGSigner(gpg_keys.secret_key) as signer:
            signed = signer.sign_cleartext(b"Origin: test\nSuite: stable\n")

        assert signed.startswith(b"-----BEGIN PGP SIGNED MESSAGE-----")
        assert b"Hash: SHA512" in signed
        assert b"Origin: test" in signed
        assert gpg_verifier.verify(signed).valid

    def test_cleartext_dash_escaping_and_trailing_whitespace(self, gpg_keys, gpg_verifier):
        with GPGSigner(gpg_keys.secret_key) as signer:
            signed = signer.sign_cleartext(b"Origin: test   \n-leading line\nSuite: stable\t\n")

        body = signed.split(b"-----BEGIN PGP SIGNATURE-----")[0]
        assert b"\n- -leading line\n" in body
        assert gpg_verifier.verify(signed).valid

        # trailing whitespace is not covered by the signature
        stripped = signed.replace(b"Origin: test   \n", b"Origin: test\n").replace(b"stable\t\n", b"stable\n")
        assert gpg_verifier.verify(stripped).valid

    def test_detached_signatures(self, gpg_keys, gpg_verifier, tmp_path):
        data = b"<repomd/>"
        with GPGSigner(gpg_keys.secret_key) as signer:
            armored = signer.sign_detached(data)
            binary = signer.sign_detached_binary(data)

        assert armored.startswith(b"-----BEGIN PGP SIGNATURE-----")
        assert not binary.startswith(b"-----BEGIN")
        for name, signature in (("armored.asc", armored), ("binary.sig", binary)):
            sig_path = tmp_path / name
            sig_path.write_bytes(signature)
            assert gpg_verifier.verify_data(str(sig_path), data).valid
            assert not gpg_verifier.verify_data(str(sig_path), b"<tampered/>").valid

    def test_public_key_export(self, gpg_keys):
        with GPGSigner(gpg_keys.secret_key) as signer:
            assert signer.fingerprint == gpg_keys.fingerprint
            assert signer.get_public_key().startswith(b"-----BEGIN PGP PUBLIC KEY BLOCK-----")

    def test_key_without_secret_part(self, gpg_keys, tmp_path):
        public_only = tmp_path / "public.asc"
        public_only.write_text(gpg_keys.public_key)

        with pytest.raises(SigningError, match="no secret key"):
            GPGSigner(public_only)

    def test_missing_key_file(self, gpg_keys, tmp_path):
        with pytest.raises(SigningError):
            GPGSigner(tmp_path / "absent.asc")
