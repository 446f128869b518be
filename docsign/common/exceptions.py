"""
Custom exceptions for DocSign.

Validation failures are not exceptions: they are reported as entries in a
ValidationResult. These classes cover parse, import and signing failures.
"""


class DocSignException(Exception):
    """Base exception for DocSign errors."""
    pass


class CertificateError(DocSignException):
    """Certificate could not be decoded or uses an unsupported algorithm."""
    pass


class PrivateKeyError(DocSignException):
    """Private key is malformed, locked, or of an unsupported type."""
    pass


class SignatureError(DocSignException):
    """Signature creation failed."""
    pass
