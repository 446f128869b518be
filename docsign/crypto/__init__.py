"""
Signing and validation for DocSign.

This package provides:
- X.509 certificate parsing and inspection
- Private key import with scoped lifetime (KeyHandle)
- PKCS#7/CMS and detached signature generation
- Signature validation and report export
"""

from .certificate import (
    parse_certificate,
    check_certificate_expiration,
    format_fingerprint,
    get_certificate_info,
    export_certificate,
)
from .keys import (
    KeyHandle,
    import_private_key,
    extract_private_key_from_pfx,
    validate_key_pair,
    clear_sensitive_data,
    clear_private_key,
    generate_key_pair,
)
from .sign import create_signature, sign_file, verify_detached_signature
from .validate import validate_signature
from .report import export_validation_result, export_validation_result_as_text

__all__ = [
    'parse_certificate',
    'check_certificate_expiration',
    'format_fingerprint',
    'get_certificate_info',
    'export_certificate',
    'KeyHandle',
    'import_private_key',
    'extract_private_key_from_pfx',
    'validate_key_pair',
    'clear_sensitive_data',
    'clear_private_key',
    'generate_key_pair',
    'create_signature',
    'sign_file',
    'verify_detached_signature',
    'validate_signature',
    'export_validation_result',
    'export_validation_result_as_text',
]
