"""
Runtime configuration for DocSign.

Values come from the process environment, optionally seeded from a .env file.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


DEFAULT_HASH_ALGORITHM = os.getenv('DOCSIGN_HASH_ALGORITHM', 'SHA-256')
DEFAULT_SIGNATURE_FORMAT = os.getenv('DOCSIGN_SIGNATURE_FORMAT', 'pkcs7')
TIMESTAMP_MAX_AGE_DAYS = int(os.getenv('DOCSIGN_TIMESTAMP_MAX_AGE_DAYS', 365))
REQUIRE_TRUSTED_CAS = _env_flag('DOCSIGN_REQUIRE_TRUSTED_CAS')
LOG_LEVEL = os.getenv('DOCSIGN_LOG_LEVEL', 'INFO')
