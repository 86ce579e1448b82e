"""
Block Cipher Catalogue
======================

Names the block ciphers cryptutil can dispatch to and how to load them.

Providers:
    - AES, SM4: ``cryptography.hazmat.primitives.ciphers.algorithms``
    - Camellia, Blowfish, CAST5, TripleDES: ``cryptography.hazmat.decrepit.ciphers.algorithms``
      (older cryptography releases still expose them from ``algorithms``)

Key Sizes:
    Each entry records the cipher's native key size in bytes. An entry
    without one is keyed by its block size; variable-key ciphers (Blowfish)
    record a key size of 0 and get a hardcoded length from
    ``FALLBACK_KEY_SIZES`` instead.

WARNING:
    Blowfish, CAST5 and TripleDES use 64-bit blocks and are kept for
    interoperability only.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass
from typing import Callable, Final, Mapping, Optional

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from cryptutil.core.crypto.registry import Registry
from cryptutil.core.errors import PrimitiveUnavailableError

DEFAULT_KEY_SIZE: Final[int] = 32  # 256 bits
FALLBACK_KEY_SIZES: Final[Mapping[str, int]] = {
    "Blowfish": 56,  # 448 bits, the cipher's maximum
}

_DECREPIT_ALGORITHMS: Final[str] = "cryptography.hazmat.decrepit.ciphers.algorithms"


def _modern(name: str) -> Callable[[], type]:
    def load() -> type:
        cls = getattr(algorithms, name, None)
        if cls is None:
            raise PrimitiveUnavailableError(f"cryptography provides no {name} cipher")
        return cls
    return load


def _decrepit(name: str) -> Callable[[], type]:
    def load() -> type:
        try:
            module = importlib.import_module(_DECREPIT_ALGORITHMS)
            cls = getattr(module, name, None)
        except ImportError:
            cls = None
        if cls is None:
            cls = getattr(algorithms, name, None)
        if cls is None:
            raise PrimitiveUnavailableError(f"cryptography provides no {name} cipher")
        return cls
    return load


@dataclass(frozen=True, slots=True)
class CipherSpec:
    """
    Immutable description of a block cipher.

    Attributes:
        name: Canonical cipher name
        loader: Returns the ``cryptography`` algorithm class
        block_size: Block size in bytes
        key_size: Native key size in bytes (None: use block size, 0: variable)
    """

    name: str
    loader: Callable[[], type]
    block_size: int
    key_size: Optional[int] = None

    def load(self) -> type:
        """Import the algorithm class, raising PrimitiveUnavailableError if absent."""
        return self.loader()

    def algorithm(self, key: bytes) -> algorithms.BlockCipherAlgorithm:
        """Instantiate the algorithm with ``key``."""
        return self.load()(key)

    @property
    def fallback_key_size(self) -> int:
        """Hardcoded key length used when the cipher has no native size."""
        return FALLBACK_KEY_SIZES.get(self.name, DEFAULT_KEY_SIZE)

    @property
    def native_key_size(self) -> int:
        """Key length for derived keys: key size, else block size, else hardcoded."""
        size = self.block_size if self.key_size is None else self.key_size
        return size or self.fallback_key_size

    def probe(self) -> bool:
        """
        Check that the backend can actually run this cipher.

        Raises:
            PrimitiveUnavailableError: If the class is missing or the
                OpenSSL backend does not support it
        """
        key = bytes(self.native_key_size)
        try:
            Cipher(self.algorithm(key), modes.CBC(bytes(self.block_size))).encryptor()
        except UnsupportedAlgorithm as e:
            raise PrimitiveUnavailableError(f"{self.name} is not supported by the backend") from e
        return True


CIPHERS: Final[Registry[CipherSpec]] = Registry(
    "cipher", validator=lambda spec: isinstance(spec, CipherSpec)
)

CIPHERS.add("AES", CipherSpec("AES", _modern("AES"), block_size=16, key_size=32),
            aliases=("Rijndael",))
CIPHERS.add("Camellia", CipherSpec("Camellia", _decrepit("Camellia"), block_size=16, key_size=32))
CIPHERS.add("SM4", CipherSpec("SM4", _modern("SM4"), block_size=16, key_size=16))
CIPHERS.add("Blowfish", CipherSpec("Blowfish", _decrepit("Blowfish"), block_size=8, key_size=0))
CIPHERS.add("CAST5", CipherSpec("CAST5", _decrepit("CAST5"), block_size=8, key_size=16))
CIPHERS.add("TripleDES", CipherSpec("TripleDES", _decrepit("TripleDES"), block_size=8, key_size=24),
            aliases=("3DES", "DES_EDE3"))


def get_cipher(name: str) -> CipherSpec:
    """Look up a cipher by name (raises UnsupportedAlgorithmError)."""
    return CIPHERS.lookup(name)


def probe_cipher(name: str) -> bool:
    """Fallback probe for the ``cipher`` category."""
    return get_cipher(name).probe()
