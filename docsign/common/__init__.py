"""
Common models, configuration and helpers for DocSign.
"""

from .exceptions import *
from .models import *
from .utils import now_utc, b64encode, b64decode, format_duration

__all__ = [
    'now_utc',
    'b64encode',
    'b64decode',
    'format_duration',
]
