"""
vocali-common: Shared library for the Vocali API.

Provides configuration management, structured logging setup, and
timestamp helpers used by the HTTP gateway.
"""

from vocali_common.config import EnvironmentValidationError, Settings, load_settings
from vocali_common.logging import configure_logging

__all__ = [
    "EnvironmentValidationError",
    "Settings",
    "configure_logging",
    "load_settings",
]
