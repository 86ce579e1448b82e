"""
cryptutil - Crypto Policy and Framing
=====================================

Chooses ciphers, modes, digests, MACs and encodings through cascading
defaults and fallback lists, and frames arbitrary data into versioned,
tamper-evident byte strings.

Security Notice:
- No key material is logged
- Verification failures are fatal unless explicitly downgraded
- No secure defaults are implied; pick algorithms deliberately
"""

from cryptutil.core.config import CryptoDefaults, UtilConfig
from cryptutil.core.crypto.engine import CryptUtil
from cryptutil.core.errors import CryptUtilError, TamperDetectedError
from cryptutil.core.logging import configure_logging, get_secure_logger

__version__ = "0.1.0"

__all__ = [
    "CryptUtil",
    "CryptoDefaults",
    "UtilConfig",
    "CryptUtilError",
    "TamperDetectedError",
    "configure_logging",
    "get_secure_logger",
    "__version__",
]
