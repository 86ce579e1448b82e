"""
Key and Nonce Derivation
========================

Turns user-supplied keys and nonces into the exact bytes a primitive needs.

Key Processing:
    - Literal keys (``literal_key=True`` or the ``use_literal_key`` default)
      are used verbatim
    - Otherwise the key is stretched to the target size with SHAKE256,
      so any input length yields a fixed-length key
    - Target size: explicit ``key_size``, else the cipher's native key
      size, else its block size, else a hardcoded per-cipher length

Nonce Processing:
    - An explicit (or default) non-empty nonce is used as given
    - Otherwise a fresh 128-bit UUID4 value is generated per call

WARNING:
    SHAKE256 stretching normalizes length; it is not a password hash.
    Low-entropy passphrases should go through a real KDF first.
"""

from __future__ import annotations

import uuid
from typing import Final, Optional, Union

from cryptography.hazmat.primitives import hashes

from cryptutil.core.crypto.ciphers import get_cipher
from cryptutil.core.crypto.params import ParameterResolver, Params
from cryptutil.core.errors import MissingParameterError

# Digest used to stretch keys to an exact width
KEY_STRETCH_DIGEST: Final[str] = "SHAKE256"
NONCE_SIZE: Final[int] = 16  # 128 bits


def to_bytes(value: Union[str, bytes, bytearray, memoryview], field_name: str = "value") -> bytes:
    """Coerce key/nonce material to bytes (text is UTF-8 encoded)."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"{field_name} must be str or bytes, got {type(value).__name__}")


def stretch_key(key: bytes, size: int) -> bytes:
    """
    Derive exactly ``size`` bytes from ``key`` with SHAKE256.

    Args:
        key: Input key material of any length
        size: Output length in bytes

    Returns:
        Derived key bytes
    """
    if size <= 0:
        raise ValueError("Key size must be positive")
    digest = hashes.Hash(hashes.SHAKE256(digest_size=size))
    digest.update(key)
    return digest.finalize()


class KeyDeriver:
    """
    Produces key and nonce bytes for one profile.

    Args:
        resolver: The profile's parameter resolver
    """

    __slots__ = ("_resolver",)

    def __init__(self, resolver: ParameterResolver) -> None:
        self._resolver = resolver

    def key_size(self, params: Params) -> int:
        """Target size of a derived key for these parameters."""
        size = params.get("key_size")
        if size:
            return int(size)
        cipher = get_cipher(self._resolver.resolve(params, "cipher"))
        return cipher.native_key_size

    def derive_key(self, params: Params) -> bytes:
        """
        Return the key bytes for an operation.

        Raises:
            MissingParameterError: If no key is given or configured
        """
        key = self._resolver.configured(params, "key")
        if key is None:
            raise MissingParameterError("key")
        key = to_bytes(key, "key")

        if self._resolver.flag(params, "literal_key", "use_literal_key"):
            return key

        return stretch_key(key, self.key_size(params))

    def derive_nonce(self, params: Params) -> bytes:
        """Explicit or default non-empty nonce, else a fresh UUID4."""
        nonce = self.configured_nonce(params)
        if nonce:
            return nonce
        return uuid.uuid4().bytes

    def configured_nonce(self, params: Params) -> Optional[bytes]:
        """Explicit or default nonce, or None when neither is non-empty."""
        nonce = self._resolver.configured(params, "nonce")
        if nonce is None:
            return None
        nonce = to_bytes(nonce, "nonce")
        return nonce or None
