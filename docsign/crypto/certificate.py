"""
X.509 Certificate Parsing

Decodes PEM/DER certificates into Certificate records:
- Subject/issuer distinguished names
- Validity window and expiration status
- Public key parameters (RSA or ECDSA)
- Extensions (unknown ones kept as opaque DER)
- SHA-1/SHA-256 fingerprints
"""

from datetime import datetime, timezone
from typing import Optional, Union

from asn1crypto import pem as asn1_pem
from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID, SignatureAlgorithmOID
from loguru import logger

from docsign.common.exceptions import CertificateError
from docsign.common.models import (
    Certificate,
    CertificateExtension,
    DistinguishedName,
    ECDSAPublicKeyInfo,
    ExpirationStatus,
    Fingerprints,
    RSAPublicKeyInfo,
)
from docsign.common.utils import days_between, digest_hex_upper, now_utc

# Short codes for the attributes the DN model names explicitly
DN_SHORT_CODES = {
    NameOID.COMMON_NAME: "CN",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.LOCALITY_NAME: "L",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.COUNTRY_NAME: "C",
    NameOID.EMAIL_ADDRESS: "E",
}

# ECDSA key sizes come from the curve, not from the key material
CURVE_KEY_SIZES = {
    "secp256r1": 256,
    "secp384r1": 384,
    "secp521r1": 521,
    "secp256k1": 256,
}

SIGNATURE_ALGORITHM_NAMES = {
    SignatureAlgorithmOID.RSA_WITH_SHA1: "SHA1withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA224: "SHA224withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA256: "SHA256withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA384: "SHA384withRSA",
    SignatureAlgorithmOID.RSA_WITH_SHA512: "SHA512withRSA",
    SignatureAlgorithmOID.RSASSA_PSS: "RSASSA-PSS",
    SignatureAlgorithmOID.ECDSA_WITH_SHA1: "SHA1withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA224: "SHA224withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA256: "SHA256withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA384: "SHA384withECDSA",
    SignatureAlgorithmOID.ECDSA_WITH_SHA512: "SHA512withECDSA",
}


def parse_certificate(data: Union[str, bytes], format: str = "pem") -> Certificate:
    """
    Parse a PEM or DER encoded X.509 certificate.

    DER input is reframed as PEM first so both formats follow one path.

    Args:
        data: PEM text, DER bytes, or DER as a hex string
        format: "pem" or "der"

    Returns:
        Parsed Certificate

    Raises:
        CertificateError: If the input is not a well-formed, supported certificate
    """
    if format == "pfx":
        raise CertificateError("PFX format requires separate handling")
    if format not in ("pem", "der"):
        raise CertificateError(f"Unsupported certificate format: {format}")

    try:
        if format == "der":
            der = bytes.fromhex(data) if isinstance(data, str) else bytes(data)
            pem_bytes = asn1_pem.armor("CERTIFICATE", der)
        else:
            pem_bytes = data.encode("ascii") if isinstance(data, str) else bytes(data)

        cert = x509.load_pem_x509_certificate(pem_bytes)
        der_bytes = cert.public_bytes(serialization.Encoding.DER)

        parsed = Certificate(
            version=cert.version.value + 1,
            serial_number=_serial_hex(cert.serial_number),
            issuer=parse_distinguished_name(cert.issuer),
            subject=parse_distinguished_name(cert.subject),
            not_before=cert.not_valid_before_utc,
            not_after=cert.not_valid_after_utc,
            public_key=_parse_public_key(cert),
            signature_algorithm=SIGNATURE_ALGORITHM_NAMES.get(
                cert.signature_algorithm_oid, cert.signature_algorithm_oid.dotted_string
            ),
            extensions=_parse_extensions(cert),
            fingerprints=Fingerprints(
                sha1=digest_hex_upper(der_bytes, "sha1"),
                sha256=digest_hex_upper(der_bytes, "sha256"),
            ),
            raw=cert.public_bytes(serialization.Encoding.PEM).decode("ascii"),
        )
    except CertificateError:
        raise
    except (ValueError, TypeError, UnsupportedAlgorithm, x509.InvalidVersion) as e:
        raise CertificateError(f"Failed to parse certificate: {e}") from e

    logger.debug(f"Parsed certificate for '{parsed.subject.CN}' ({parsed.public_key.algorithm})")
    return parsed


def parse_distinguished_name(name: x509.Name) -> DistinguishedName:
    """
    Fold an X.509 Name into a DistinguishedName.

    Attributes are visited in encoding order; a later attribute with the same
    short code replaces an earlier one, so multi-valued components are lossy.
    """
    values = {}
    for attribute in name:
        code = DN_SHORT_CODES.get(attribute.oid) or attribute.rfc4514_attribute_name
        value = attribute.value
        values[code] = value if isinstance(value, str) else value.hex()
    return DistinguishedName.model_validate(values)


def _serial_hex(serial: int) -> str:
    text = format(serial, "x")
    return text if len(text) % 2 == 0 else "0" + text


def _parse_public_key(cert: x509.Certificate):
    public_key = cert.public_key()

    if isinstance(public_key, rsa.RSAPublicKey):
        numbers = public_key.public_numbers()
        return RSAPublicKeyInfo(
            key_size=numbers.n.bit_length(),
            modulus=format(numbers.n, "x"),
            exponent=format(numbers.e, "x"),
        )

    if isinstance(public_key, ec.EllipticCurvePublicKey):
        curve = public_key.curve.name
        if curve not in CURVE_KEY_SIZES:
            raise CertificateError(f"Unsupported elliptic curve: {curve}")
        return ECDSAPublicKeyInfo(key_size=CURVE_KEY_SIZES[curve], curve=curve)

    raise CertificateError("Unsupported public key algorithm")


def _parse_extensions(cert: x509.Certificate) -> list:
    extensions = []
    for ext in cert.extensions:
        extensions.append(CertificateExtension(
            oid=ext.oid.dotted_string,
            name=_extension_name(ext),
            critical=ext.critical,
            value=_describe_extension(ext.value),
        ))
    return extensions


def _extension_name(ext: x509.Extension) -> str:
    if isinstance(ext.value, x509.UnrecognizedExtension):
        return ext.oid.dotted_string
    return type(ext.value).__name__


def _describe_extension(value):
    """Decode the common extensions; everything else is kept as DER hex."""
    if isinstance(value, x509.BasicConstraints):
        return {"ca": value.ca, "path_length": value.path_length}

    if isinstance(value, x509.KeyUsage):
        usages = [
            "digital_signature", "content_commitment", "key_encipherment",
            "data_encipherment", "key_agreement", "key_cert_sign", "crl_sign",
        ]
        enabled = [usage for usage in usages if getattr(value, usage)]
        if value.key_agreement:
            enabled += [u for u in ("encipher_only", "decipher_only") if getattr(value, u)]
        return {"usages": enabled}

    if isinstance(value, x509.ExtendedKeyUsage):
        return {"usages": [oid.dotted_string for oid in value]}

    if isinstance(value, (x509.SubjectAlternativeName, x509.IssuerAlternativeName)):
        return {"names": [str(general_name.value) for general_name in value]}

    if isinstance(value, x509.SubjectKeyIdentifier):
        return {"key_identifier": value.digest.hex().upper()}

    if isinstance(value, x509.AuthorityKeyIdentifier):
        key_id = value.key_identifier.hex().upper() if value.key_identifier else None
        return {"key_identifier": key_id}

    if isinstance(value, x509.UnrecognizedExtension):
        return {"der": value.value.hex()}

    try:
        return {"der": value.public_bytes().hex()}
    except NotImplementedError:
        return {"der": None}


def load_x509(certificate: Certificate) -> x509.Certificate:
    """Rebuild the cryptography certificate object from a parsed Certificate."""
    return x509.load_pem_x509_certificate(certificate.raw.encode("ascii"))


def load_public_key(certificate: Certificate):
    return load_x509(certificate).public_key()


def export_certificate(certificate: Certificate, format: str = "pem") -> Union[str, bytes]:
    """
    Re-serialize a parsed certificate.

    Args:
        certificate: Parsed certificate
        format: "pem" for text, "der" for bytes

    Returns:
        PEM string or DER bytes
    """
    if format == "pem":
        return certificate.raw
    if format == "der":
        return load_x509(certificate).public_bytes(serialization.Encoding.DER)
    raise CertificateError(f"Unsupported certificate format: {format}")


def check_certificate_expiration(
    certificate: Certificate,
    now: Optional[datetime] = None
) -> ExpirationStatus:
    """
    Compute expiration status at a point in time.

    Days are whole days, floored, and negative once the certificate has expired.

    Args:
        certificate: Parsed certificate
        now: Reference time (defaults to the current UTC time; naive values are read as UTC)

    Returns:
        ExpirationStatus
    """
    now = now or now_utc()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return ExpirationStatus(
        is_expired=now > certificate.not_after,
        days_until_expiration=days_between(now, certificate.not_after),
    )


def format_fingerprint(fingerprint: str) -> str:
    """
    Insert a colon between each byte of a hex fingerprint.

    Input that already contains colons is returned unchanged; an odd trailing
    nibble stays as its own group.
    """
    if not fingerprint or ":" in fingerprint:
        return fingerprint
    return ":".join(fingerprint[i:i + 2] for i in range(0, len(fingerprint), 2))


def get_certificate_info(certificate: Certificate, now: Optional[datetime] = None) -> dict:
    """
    Extract certificate information for display.

    Args:
        certificate: Parsed certificate
        now: Reference time for the expiration fields

    Returns:
        Dictionary with certificate details
    """
    expiration = check_certificate_expiration(certificate, now)
    key = certificate.public_key
    return {
        "subject": str(certificate.subject),
        "issuer": str(certificate.issuer),
        "common_name": certificate.subject.CN or "UNKNOWN",
        "serial_number": certificate.serial_number,
        "not_valid_before": certificate.not_before,
        "not_valid_after": certificate.not_after,
        "public_key": f"{key.algorithm} {key.key_size}",
        "signature_algorithm": certificate.signature_algorithm,
        "expired": expiration.is_expired,
        "days_until_expiration": expiration.days_until_expiration,
        "sha1": format_fingerprint(certificate.fingerprints.sha1),
        "sha256": format_fingerprint(certificate.fingerprints.sha256),
    }


def verify_with_certificate(
    certificate: Certificate,
    signature: bytes,
    data: bytes,
    hash_algorithm: hashes.HashAlgorithm
) -> bool:
    """
    Verify a signature over data with a certificate's public key.

    Args:
        certificate: Certificate holding the verifying key
        signature: Raw signature bytes
        data: Signed bytes (hashed internally)
        hash_algorithm: cryptography hash instance

    Returns:
        True if the signature is valid, False otherwise
    """
    public_key = load_public_key(certificate)
    algorithm = certificate.public_key.algorithm

    try:
        if algorithm == "RSA":
            public_key.verify(signature, data, padding.PKCS1v15(), hash_algorithm)
        elif algorithm == "ECDSA":
            public_key.verify(signature, data, ec.ECDSA(hash_algorithm))
        else:
            return False
    except InvalidSignature:
        return False
    except (TypeError, ValueError) as e:
        logger.warning(f"Signature verification error: {e}")
        return False

    return True


def is_issued_by(certificate: Certificate, issuer: Certificate) -> bool:
    """Check that issuer's public key verifies the certificate's own signature."""
    cert = load_x509(certificate)
    hash_algorithm = cert.signature_hash_algorithm
    if hash_algorithm is None:
        return False
    return verify_with_certificate(issuer, cert.signature, cert.tbs_certificate_bytes, hash_algorithm)
