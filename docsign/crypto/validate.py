"""
Signature Validation

Checks a CMS SignedData signature against a document and reports every
finding as a structured error or warning instead of raising:
1. Decode the SignedData
2. Extract and parse the signer certificate
3. Verify the signature over the document
4. Check the certificate validity window
5. Check the certificate against the trusted CAs (single hop)
6. Check the signing time
"""

import hashlib
from datetime import datetime, timedelta
from typing import List, Optional, Union

from loguru import logger

from docsign.common import config
from docsign.common.exceptions import CertificateError
from docsign.common.models import (
    Certificate,
    ValidationDetails,
    ValidationError,
    ValidationOptions,
    ValidationResult,
    ValidationWarning,
)
from docsign.common.utils import constant_time_compare, now_utc
from docsign.crypto.certificate import is_issued_by, parse_certificate, verify_with_certificate
from docsign.crypto.cms import ParsedSignedData, hash_for, load_signed_data


class _Findings:
    def __init__(self):
        self.errors: List[ValidationError] = []
        self.warnings: List[ValidationWarning] = []

    def error(self, code: str, message: str, severity: str = "error"):
        logger.debug(f"Validation error {code}: {message}")
        self.errors.append(ValidationError(code=code, message=message, severity=severity))

    def warning(self, code: str, message: str, severity: str = "warning"):
        logger.debug(f"Validation warning {code}: {message}")
        self.warnings.append(ValidationWarning(code=code, message=message, severity=severity))


def validate_signature(
    document: Union[bytes, str],
    signature_blob: Union[str, bytes],
    options: Optional[ValidationOptions] = None
) -> ValidationResult:
    """
    Validate a pkcs7 signature over a document.

    Only the two structural failures (undecodable SignedData, missing signer
    certificate) stop the checks early; every other finding accumulates.
    Unexpected faults become a single critical VALIDATION_ERROR entry.

    Args:
        document: Document the signature is claimed to cover
        signature_blob: Base64 (or PEM / raw DER) CMS SignedData
        options: Trusted CAs and validation switches

    Returns:
        ValidationResult
    """
    options = options or ValidationOptions()
    validated_at = now_utc()
    findings = _Findings()
    details = ValidationDetails(validated_at=validated_at)

    try:
        data = document.encode("utf-8") if isinstance(document, str) else bytes(document)
        _run_checks(data, signature_blob, options, details, findings)
    except Exception as e:
        logger.exception("Unexpected failure during signature validation")
        findings.error("VALIDATION_ERROR", f"Validation failed: {e}", severity="critical")

    result = ValidationResult(
        errors=findings.errors,
        warnings=findings.warnings,
        details=details,
        timestamp=validated_at,
    )
    logger.info(
        f"Signature validation finished: {result.status} "
        f"({len(result.errors)} errors, {len(result.warnings)} warnings)"
    )
    return result


def _run_checks(
    data: bytes,
    signature_blob: Union[str, bytes],
    options: ValidationOptions,
    details: ValidationDetails,
    findings: _Findings
):
    try:
        signed = load_signed_data(signature_blob)
    except ValueError as e:
        findings.error(
            "INVALID_SIGNATURE_FORMAT",
            f"Signature is not a valid PKCS#7/CMS SignedData structure: {e}",
            severity="critical",
        )
        return

    if not signed.certificates:
        findings.error(
            "NO_SIGNER_CERTIFICATE",
            "Signature does not contain a signer certificate",
            severity="critical",
        )
        return

    try:
        signer = parse_certificate(signed.certificates[0], "der")
    except CertificateError as e:
        findings.error(
            "NO_SIGNER_CERTIFICATE",
            f"Embedded signer certificate could not be parsed: {e}",
            severity="critical",
        )
        return

    details.certificate_chain = [signer]
    now = details.validated_at

    details.signature_valid = _verify_signature(data, signed, signer)
    if not details.signature_valid:
        findings.error(
            "SIGNATURE_VERIFICATION_FAILED",
            "Signature does not match the document",
            severity="critical",
        )

    details.certificate_valid = _check_validity_window(signer, options, now, findings)

    details.chain_valid = _check_chain(signer, options, details, findings)

    if options.check_revocation:
        logger.info("Revocation checking is not implemented; certificate status was not checked")

    if signed.signing_time is not None:
        details.signed_at = signed.signing_time
        if options.validate_timestamp:
            details.timestamp_valid = _check_timestamp(signed.signing_time, now, findings)
        else:
            details.timestamp_valid = True


def _verify_signature(data: bytes, signed: ParsedSignedData, signer: Certificate) -> bool:
    try:
        hash_algorithm = hash_for(signed.digest_algorithm)
    except ValueError as e:
        logger.warning(f"Cannot verify signature: {e}")
        return False

    if signed.signed_attrs_der is None:
        return verify_with_certificate(signer, signed.signature, data, hash_algorithm)

    if signed.message_digest is None:
        logger.warning("Signed attributes carry no message digest")
        return False

    digest = hashlib.new(signed.digest_algorithm, data).digest()
    if not constant_time_compare(digest, signed.message_digest):
        return False

    return verify_with_certificate(signer, signed.signature, signed.signed_attrs_der, hash_algorithm)


def _check_validity_window(
    signer: Certificate,
    options: ValidationOptions,
    now: datetime,
    findings: _Findings
) -> bool:
    if signer.not_before > signer.not_after:
        findings.error(
            "INVALID_VALIDITY_PERIOD",
            f"Certificate validity period is inverted "
            f"(notBefore {signer.not_before.isoformat()} is after notAfter {signer.not_after.isoformat()})",
        )
        return False

    if now < signer.not_before:
        findings.error(
            "CERTIFICATE_NOT_YET_VALID",
            f"Certificate is not valid until {signer.not_before.isoformat()}",
        )
        return False

    if now > signer.not_after:
        message = f"Certificate expired on {signer.not_after.isoformat()}"
        if options.allow_expired_certificates:
            findings.warning("CERTIFICATE_EXPIRED", message)
            return True
        findings.error("CERTIFICATE_EXPIRED", message)
        return False

    return True


def _check_chain(
    signer: Certificate,
    options: ValidationOptions,
    details: ValidationDetails,
    findings: _Findings
) -> bool:
    if not options.trusted_cas:
        if options.require_trusted_cas:
            findings.error("CHAIN_VALIDATION_FAILED", "No trusted CAs supplied")
            return False
        logger.info("No trusted CAs supplied; chain validation skipped")
        return True

    if signer.issuer.CN == signer.subject.CN:
        fingerprint = signer.fingerprints.sha256.encode("ascii")
        for ca in options.trusted_cas:
            if constant_time_compare(fingerprint, ca.fingerprints.sha256.encode("ascii")):
                return True
        findings.error(
            "CHAIN_VALIDATION_FAILED",
            "Self-signed certificate is not among the trusted CAs",
        )
        return False

    issuer = next((ca for ca in options.trusted_cas if ca.subject.CN == signer.issuer.CN), None)
    if issuer is None:
        findings.error(
            "CHAIN_VALIDATION_FAILED",
            f"No trusted CA found for issuer '{signer.issuer.CN}'",
        )
        return False

    if not is_issued_by(signer, issuer):
        findings.error(
            "CHAIN_VALIDATION_FAILED",
            f"Certificate signature does not verify with trusted CA '{issuer.subject.CN}'",
        )
        return False

    details.certificate_chain.append(issuer)
    return True


def _check_timestamp(signed_at: datetime, now: datetime, findings: _Findings) -> bool:
    if signed_at > now:
        findings.warning("INVALID_TIMESTAMP", f"Signing time {signed_at.isoformat()} is in the future")
        return False

    max_age = timedelta(days=config.TIMESTAMP_MAX_AGE_DAYS)
    if now - signed_at > max_age:
        findings.warning(
            "INVALID_TIMESTAMP",
            f"Signing time {signed_at.isoformat()} is older than {config.TIMESTAMP_MAX_AGE_DAYS} days",
        )
        return False

    return True
