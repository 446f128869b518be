"""
Private Key Import and Lifetime

Imports PEM private keys (optionally password protected) into single-use
KeyHandle objects and proves that a key matches a certificate.

Scrubbing is best effort: the handle overwrites the buffers it owns and
drops its key reference, but the interpreter and the OpenSSL backend may
hold copies that Python cannot reach.
"""

import gc
from typing import Optional, Tuple, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from loguru import logger

from docsign.common.exceptions import PrivateKeyError
from docsign.common.models import Certificate
from docsign.crypto.certificate import verify_with_certificate

KEY_PAIR_TEST_DATA = b"test-data-for-validation"


class KeyHandle:
    """
    Holder for one imported private key.

    Use it as a context manager so the key is cleared on every exit path:

        with import_private_key(pem, password) as key:
            create_signature(document, certificate, key, options)
    """

    def __init__(self, private_key, pem: bytes):
        if isinstance(private_key, rsa.RSAPrivateKey):
            self.algorithm = "RSA"
        elif isinstance(private_key, ec.EllipticCurvePrivateKey):
            self.algorithm = "ECDSA"
        else:
            raise PrivateKeyError("Unsupported private key type (expected RSA or ECDSA)")

        self._private_key = private_key
        self._pem = bytearray(pem)

    @property
    def cleared(self) -> bool:
        return self._private_key is None

    def sign(self, data: bytes, hash_algorithm: hashes.HashAlgorithm) -> bytes:
        """
        Sign data with the held key.

        Args:
            data: Bytes to sign (hashed internally)
            hash_algorithm: cryptography hash instance

        Returns:
            Raw signature bytes (PKCS#1 v1.5 for RSA, DER ECDSA-Sig-Value for ECDSA)
        """
        if self._private_key is None:
            raise PrivateKeyError("Private key has already been cleared")

        if self.algorithm == "RSA":
            return self._private_key.sign(data, padding.PKCS1v15(), hash_algorithm)
        if self.algorithm == "ECDSA":
            return self._private_key.sign(data, ec.ECDSA(hash_algorithm))
        raise PrivateKeyError(f"Unsupported key algorithm: {self.algorithm}")

    def clear(self):
        """Overwrite the owned PEM buffer and release the key object."""
        if self._private_key is None:
            return
        clear_sensitive_data(self._pem)
        self._private_key = None
        logger.debug(f"Cleared {self.algorithm} private key handle")

    def __enter__(self) -> "KeyHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.clear()
        return False

    def __reduce__(self):
        raise TypeError("KeyHandle cannot be serialized")

    def __repr__(self) -> str:
        state = "cleared" if self.cleared else "loaded"
        return f"<KeyHandle {self.algorithm} {state}>"


def import_private_key(
    pem: Union[str, bytes],
    password: Optional[Union[str, bytes]] = None
) -> KeyHandle:
    """
    Import a PEM private key.

    Encryption is detected from the ENCRYPTED marker in the PEM armor or
    headers. Encrypted keys are decrypted and reframed as unencrypted PKCS#8
    before the key object is built.

    Args:
        pem: PEM-encoded private key (PKCS#8 or traditional OpenSSL)
        password: Password for encrypted keys

    Returns:
        KeyHandle

    Raises:
        PrivateKeyError: If the PEM is malformed, the password is missing or
            wrong, or the key is not RSA/ECDSA
    """
    pem_bytes = pem.encode("utf-8") if isinstance(pem, str) else bytes(pem)
    if b"-----BEGIN" not in pem_bytes or b"PRIVATE KEY-----" not in pem_bytes:
        raise PrivateKeyError("Failed to import private key: input is not a PEM private key")

    try:
        if b"ENCRYPTED" in pem_bytes:
            if not password:
                raise PrivateKeyError("Password required for encrypted private key")
            secret = password.encode("utf-8") if isinstance(password, str) else password
            decrypted = serialization.load_pem_private_key(pem_bytes, password=secret)
            pem_bytes = decrypted.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            del decrypted

        private_key = serialization.load_pem_private_key(pem_bytes, password=None)
    except PrivateKeyError:
        raise
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PrivateKeyError(f"Failed to import private key: {e}") from e

    handle = KeyHandle(private_key, pem_bytes)
    logger.debug(f"Imported {handle.algorithm} private key")
    return handle


def extract_private_key_from_pfx(data: bytes, password: Optional[Union[str, bytes]]) -> KeyHandle:
    """
    Pull the private key out of a PKCS#12 (PFX) bundle.

    Only the key is returned; certificates in the bundle are ignored.
    """
    secret = password.encode("utf-8") if isinstance(password, str) else password
    try:
        private_key, _, _ = pkcs12.load_key_and_certificates(data, secret)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PrivateKeyError(f"Failed to extract private key from PFX: {e}") from e

    if private_key is None:
        raise PrivateKeyError("PFX bundle does not contain a private key")

    pem_bytes = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return KeyHandle(private_key, pem_bytes)


def validate_key_pair(key: KeyHandle, certificate: Certificate) -> bool:
    """
    Check that a private key belongs to a certificate.

    A constant plaintext is signed with the private key and verified with the
    certificate's public key; key material is never compared directly.

    Args:
        key: Imported private key
        certificate: Parsed certificate

    Returns:
        True if the signature verifies, False otherwise (including for a
        cleared key)
    """
    try:
        signature = key.sign(KEY_PAIR_TEST_DATA, hashes.SHA256())
    except (PrivateKeyError, ValueError, TypeError) as e:
        logger.warning(f"Key pair validation could not sign test data: {e}")
        return False

    return verify_with_certificate(certificate, signature, KEY_PAIR_TEST_DATA, hashes.SHA256())


def clear_sensitive_data(data) -> None:
    """
    Overwrite a mutable buffer with zeros.

    Immutable str/bytes values cannot be overwritten in place; for those only
    the collector hint applies and the caller must drop its references.
    """
    if isinstance(data, (bytearray, memoryview)):
        for i in range(len(data)):
            data[i] = 0
    else:
        logger.debug("Cannot scrub immutable value in place")
    gc.collect()


def clear_private_key(key: KeyHandle) -> None:
    key.clear()


def generate_key_pair(algorithm: str = "RSA", key_size: int = 2048) -> Tuple[str, str]:
    """
    Generate a fresh key pair.

    Args:
        algorithm: "RSA" or "ECDSA"
        key_size: RSA modulus size, or 256 (secp256r1) / anything else (secp384r1) for ECDSA

    Returns:
        Tuple of (private_key_pem, public_key_pem) in PKCS#8 / SubjectPublicKeyInfo form
    """
    if algorithm == "RSA":
        private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    elif algorithm == "ECDSA":
        curve = ec.SECP256R1() if key_size == 256 else ec.SECP384R1()
        private_key = ec.generate_private_key(curve)
    else:
        raise PrivateKeyError(f"Unsupported key algorithm: {algorithm}")

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem.decode("ascii"), public_pem.decode("ascii")
