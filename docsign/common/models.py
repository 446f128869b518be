"""
Data model definitions using Pydantic.

Certificates, signing results and validation reports are plain models so
they can be rendered or exported as JSON by any collaborator.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field

from docsign.common import config

HashAlgorithm = Literal["SHA-256", "SHA-384", "SHA-512"]
SignatureFormat = Literal["pkcs7", "detached", "pdf"]
ValidationStatus = Literal["valid", "valid-with-warnings", "invalid", "unknown"]


class DistinguishedName(BaseModel):
    """
    Distinguished name folded into one value per attribute short code.

    Attributes outside the common set are kept as extra fields keyed by
    their RFC 4514 short name or dotted OID.
    """
    model_config = ConfigDict(frozen=True, extra="allow")

    CN: Optional[str] = None
    O: Optional[str] = None
    OU: Optional[str] = None
    L: Optional[str] = None
    ST: Optional[str] = None
    C: Optional[str] = None
    E: Optional[str] = None

    def get(self, code: str) -> Optional[str]:
        return self.to_dict().get(code)

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}

    def __str__(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.to_dict().items())


class RSAPublicKeyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    algorithm: Literal["RSA"] = "RSA"
    key_size: int
    modulus: str = Field(..., description="Hex-encoded modulus")
    exponent: str = Field(..., description="Hex-encoded public exponent")


class ECDSAPublicKeyInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    algorithm: Literal["ECDSA"] = "ECDSA"
    key_size: int = Field(..., description="Bit size taken from the named curve")
    curve: str


PublicKeyInfo = Annotated[
    Union[RSAPublicKeyInfo, ECDSAPublicKeyInfo],
    Field(discriminator="algorithm"),
]


class CertificateExtension(BaseModel):
    model_config = ConfigDict(frozen=True)

    oid: str
    name: str
    critical: bool = False
    value: Any = Field(None, description="Decoded value, or {'der': hex} when opaque")


class Fingerprints(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha1: str = Field(..., description="Uppercase hex SHA-1 of the DER encoding")
    sha256: str = Field(..., description="Uppercase hex SHA-256 of the DER encoding")


class Certificate(BaseModel):
    """Parsed X.509 certificate."""
    model_config = ConfigDict(frozen=True)

    version: int
    serial_number: str = Field(..., description="Hex-encoded serial number")
    issuer: DistinguishedName
    subject: DistinguishedName
    not_before: datetime
    not_after: datetime
    public_key: PublicKeyInfo
    signature_algorithm: str
    extensions: List[CertificateExtension] = Field(default_factory=list)
    fingerprints: Fingerprints
    raw: str = Field(..., description="PEM encoding")


class ExpirationStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_expired: bool
    days_until_expiration: int


class SignatureOptions(BaseModel):
    """Signing configuration."""
    model_config = ConfigDict(validate_default=True)

    hash_algorithm: HashAlgorithm = Field(default_factory=lambda: config.DEFAULT_HASH_ALGORITHM)
    format: SignatureFormat = Field(default_factory=lambda: config.DEFAULT_SIGNATURE_FORMAT)
    include_timestamp: bool = False
    timestamp_url: Optional[str] = None


class SignatureMetadata(BaseModel):
    signed_at: datetime
    signer_info: DistinguishedName
    algorithm: str
    hash_algorithm: HashAlgorithm
    certificate_fingerprint: str


class SignatureResult(BaseModel):
    """Output of a signing operation. Metadata is always derived from the recorded fields."""
    model_config = ConfigDict(frozen=True)

    signature: str = Field(..., description="Base64-encoded signature or CMS structure")
    format: SignatureFormat
    algorithm: str = Field(..., description="Concrete algorithm, e.g. SHA256withRSA")
    hash_algorithm: HashAlgorithm
    certificate: Certificate
    signed_at: datetime
    timestamp: Optional[datetime] = None

    @computed_field
    @property
    def metadata(self) -> SignatureMetadata:
        return SignatureMetadata(
            signed_at=self.signed_at,
            signer_info=self.certificate.subject,
            algorithm=self.algorithm,
            hash_algorithm=self.hash_algorithm,
            certificate_fingerprint=self.certificate.fingerprints.sha256,
        )


class ValidationOptions(BaseModel):
    trusted_cas: List[Certificate] = Field(default_factory=list)
    check_revocation: bool = False
    validate_timestamp: bool = False
    allow_expired_certificates: bool = False
    require_trusted_cas: bool = Field(
        default_factory=lambda: config.REQUIRE_TRUSTED_CAS,
        description="Fail chain validation when no trusted CAs are supplied",
    )


class ValidationError(BaseModel):
    code: str
    message: str
    severity: Literal["error", "critical"] = "error"


class ValidationWarning(BaseModel):
    code: str
    message: str
    severity: Literal["warning", "info"] = "warning"


class ValidationDetails(BaseModel):
    signature_valid: bool = False
    certificate_valid: bool = False
    chain_valid: bool = False
    timestamp_valid: Optional[bool] = None
    certificate_chain: List[Certificate] = Field(default_factory=list)
    signed_at: Optional[datetime] = None
    validated_at: datetime


def derive_status(valid: bool, warning_count: int) -> ValidationStatus:
    """Map validity and warning count onto the reported status."""
    if not valid:
        return "invalid"
    return "valid-with-warnings" if warning_count > 0 else "valid"


class ValidationResult(BaseModel):
    """Validation report. `valid` and `status` are computed from errors and warnings."""
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[ValidationWarning] = Field(default_factory=list)
    details: ValidationDetails
    timestamp: datetime

    @computed_field
    @property
    def valid(self) -> bool:
        return len(self.errors) == 0

    @computed_field
    @property
    def status(self) -> ValidationStatus:
        return derive_status(self.valid, len(self.warnings))
