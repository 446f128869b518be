"""
Document Signing

Signs documents with an imported private key and packages the result as:
- pkcs7: CMS SignedData with the document, signer certificate and signing time
- detached: the raw signature value only

The caller owns the key handle and must clear it after the call, on success
and on failure (use the handle as a context manager).
"""

import hashlib
from pathlib import Path
from typing import Optional, Union

from loguru import logger

from docsign.common.exceptions import PrivateKeyError, SignatureError
from docsign.common.models import Certificate, SignatureOptions, SignatureResult
from docsign.common.utils import b64decode, b64encode, now_utc
from docsign.crypto.certificate import export_certificate, verify_with_certificate
from docsign.crypto.cms import (
    HASH_ALGORITHMS,
    build_signed_attributes,
    build_signed_data,
    hash_for,
    signed_digest_algorithm,
)
from docsign.crypto.keys import KeyHandle


def signature_algorithm_name(hash_algorithm: str, key_algorithm: str) -> str:
    """
    Combine a hash option and key algorithm into a name like "SHA256withRSA".
    """
    return f"{hash_algorithm.replace('-', '')}with{key_algorithm}"


def create_signature(
    document: Union[bytes, str],
    certificate: Certificate,
    key: KeyHandle,
    options: Optional[SignatureOptions] = None
) -> SignatureResult:
    """
    Sign a document.

    Args:
        document: Document bytes (str is encoded as UTF-8)
        certificate: Signer certificate
        key: Private key matching the certificate
        options: Hash algorithm and output format (configured defaults if omitted)

    Returns:
        SignatureResult with base64 signature and derived metadata

    Raises:
        SignatureError: On unsupported options, key/certificate algorithm
            mismatch, or any signing failure
    """
    data = document.encode("utf-8") if isinstance(document, str) else bytes(document)
    options = options or SignatureOptions()

    if options.format == "pdf":
        raise SignatureError("PDF-embedded signatures are not supported")
    if options.hash_algorithm not in HASH_ALGORITHMS:
        raise SignatureError(f"Unsupported hash algorithm: {options.hash_algorithm}")

    if key.cleared:
        raise SignatureError("Private key has been cleared")

    key_algorithm = certificate.public_key.algorithm
    if key.algorithm != key_algorithm:
        raise SignatureError(
            f"Key algorithm {key.algorithm} does not match certificate algorithm {key_algorithm}"
        )

    digest_name = HASH_ALGORITHMS[options.hash_algorithm]
    algorithm = signature_algorithm_name(options.hash_algorithm, key_algorithm)
    signed_at = now_utc().replace(microsecond=0)

    try:
        hash_algorithm = hash_for(digest_name)
        if options.format == "pkcs7":
            signature = _sign_pkcs7(data, certificate, key, digest_name, hash_algorithm, signed_at)
        else:
            signature = key.sign(data, hash_algorithm)
    except (PrivateKeyError, ValueError, TypeError) as e:
        raise SignatureError(f"Failed to create signature: {e}") from e

    logger.info(f"Created {options.format} signature ({algorithm}) for '{certificate.subject.CN}'")

    return SignatureResult(
        signature=b64encode(signature),
        format=options.format,
        algorithm=algorithm,
        hash_algorithm=options.hash_algorithm,
        certificate=certificate,
        signed_at=signed_at,
        timestamp=signed_at if options.include_timestamp else None,
    )


def _sign_pkcs7(data, certificate, key, digest_name, hash_algorithm, signed_at) -> bytes:
    message_digest = hashlib.new(digest_name, data).digest()
    signed_attrs = build_signed_attributes(message_digest, signed_at)

    # Sign the SET-tagged encoding before the attributes are retagged inside SignerInfo
    signature = key.sign(signed_attrs.dump(), hash_algorithm)

    return build_signed_data(
        content=data,
        certificate_der=export_certificate(certificate, "der"),
        digest_name=digest_name,
        signature_algorithm=signed_digest_algorithm(digest_name, certificate.public_key.algorithm),
        signed_attrs=signed_attrs,
        signature=signature,
    )


def sign_file(
    path: Union[str, Path],
    certificate: Certificate,
    key: KeyHandle,
    options: Optional[SignatureOptions] = None
) -> SignatureResult:
    """Sign the contents of a file."""
    with open(path, "rb") as f:
        document = f.read()
    return create_signature(document, certificate, key, options)


def verify_detached_signature(
    document: Union[bytes, str],
    signature_b64: str,
    certificate: Certificate,
    hash_algorithm: str = "SHA-256"
) -> bool:
    """
    Verify a detached signature with a certificate obtained out-of-band.

    Args:
        document: Original document
        signature_b64: Base64-encoded raw signature
        certificate: Signer certificate
        hash_algorithm: Hash option used at signing time

    Returns:
        True if the signature is valid, False otherwise
    """
    data = document.encode("utf-8") if isinstance(document, str) else bytes(document)
    if hash_algorithm not in HASH_ALGORITHMS:
        return False

    try:
        signature = b64decode(signature_b64)
    except ValueError:
        return False

    return verify_with_certificate(
        certificate, signature, data, hash_for(HASH_ALGORITHMS[hash_algorithm])
    )
