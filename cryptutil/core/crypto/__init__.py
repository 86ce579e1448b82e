"""
cryptutil Cryptographic Core
============================

Policy and framing over external primitives.

Architecture:
    1. Fallback + parameter resolution: which algorithm to use
    2. Key/nonce derivation: exact bytes for the chosen primitive
    3. Dispatch: name → cipher, digest or MAC handle
    4. Envelope codec and tamper-evident protocol: the wire format

WARNING: This module handles sensitive cryptographic material.
         Incorrect usage can compromise security.
"""

from cryptutil.core.crypto.engine import CryptUtil
from cryptutil.core.crypto.envelope import DataEnvelope, pack_data, unpack_data
from cryptutil.core.crypto.tamper import EnvelopeType, TamperEnvelope

__all__ = [
    "CryptUtil",
    "DataEnvelope",
    "EnvelopeType",
    "TamperEnvelope",
    "pack_data",
    "unpack_data",
]
