"""
Agentworks Configuration

Environment-driven settings.
"""

from .loader import get_settings
from .schemas import AppSettings, secret_or_none

__all__ = [
    "AppSettings",
    "get_settings",
    "secret_or_none",
]
