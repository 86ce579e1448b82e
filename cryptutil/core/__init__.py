"""
Core module - Contains configuration, errors and logging.
"""

from cryptutil.core.config import CryptoDefaults, UtilConfig
from cryptutil.core.logging import SecureLogFilter, get_secure_logger

__all__ = ["CryptoDefaults", "UtilConfig", "get_secure_logger", "SecureLogFilter"]
