"""
DocSign

Document signing and signature validation built on X.509 certificates:
- Certificate parsing (PEM / DER)
- Private key import (PEM, optionally password protected)
- PKCS#7/CMS SignedData and detached signatures (RSA, ECDSA)
- Signature validation with JSON and text reports

Library logging is disabled until an application opts in with
``logger.enable("docsign")``; the ``docsign`` command does this itself.
"""

from loguru import logger

__version__ = "1.0.0"

logger.disable("docsign")
