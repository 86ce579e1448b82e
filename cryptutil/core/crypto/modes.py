"""
Cipher Modes
============

Concrete cipher modes and the handles they produce.

Classic Modes (CBC, CFB, CTR, OFB):
    - A fresh random IV of one block is generated for every encryption
    - The IV is prepended to the ciphertext and read back on decryption
    - CBC pads with PKCS7; the others are stream-like and unpadded
    - These modes provide confidentiality only (no integrity)

Authenticated Modes (EAX, GCM, CCM, OCB):
    - Use the nonce supplied when the handle is built
    - The authentication tag is appended to the ciphertext
    - Decryption verifies the tag before returning anything
    - Nonces of a length the primitive rejects are condensed with
      SHAKE256 to the longest accepted length
    - GCM, CCM and OCB come from ``cryptography``; EAX needs ``pycryptodome``

WARNING:
    - Never reuse a (key, nonce) pair with an authenticated mode
    - Treat ``DecryptionFailedError`` as tampering, never retry with
      relaxed settings
"""

from __future__ import annotations

import hashlib
import importlib
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Final, FrozenSet, Optional, Tuple

from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, aead, modes

from cryptutil.core.crypto.ciphers import CipherSpec
from cryptutil.core.crypto.registry import Registry, normalize_name
from cryptutil.core.errors import (
    DecryptionFailedError,
    PrimitiveUnavailableError,
    UnsupportedAlgorithmError,
)

# Modes that authenticate as well as encrypt, whether or not a provider exists
KNOWN_AUTHENTICATING_MODES: Final[FrozenSet[str]] = frozenset({"EAX", "OCB", "GCM", "CWC", "CCM"})

# Symbolic mode classes and the parameter each one resolves through
SYMBOLIC_MODES: Final[dict[str, str]] = {
    "stream": "stream_mode",
    "block": "block_mode",
    "authenticated": "authenticated_mode",
}

AEAD_TAG_SIZE: Final[int] = 16  # 128 bits

_DECREPIT_MODES: Final[str] = "cryptography.hazmat.decrepit.ciphers.modes"


def is_authenticating_mode(name: str) -> bool:
    """True if ``name`` is one of the known authenticated modes."""
    return isinstance(name, str) and name.upper() in KNOWN_AUTHENTICATING_MODES


def fit_nonce(nonce: bytes, min_size: int, max_size: int) -> bytes:
    """
    Return ``nonce`` if its length is accepted, else a SHAKE256 condensation.

    The condensed value is a pure function of the nonce, so the same
    envelope nonce always yields the same primitive nonce.
    """
    if min_size <= len(nonce) <= max_size:
        return nonce
    return hashlib.shake_256(nonce).digest(max_size)


class CipherHandle(ABC):
    """Opaque encrypt/decrypt handle bound to a key (and nonce)."""

    __slots__ = ("mode", "cipher")

    def __init__(self, mode: str, cipher: str) -> None:
        self.mode = mode
        self.cipher = cipher

    @property
    def is_authenticated(self) -> bool:
        return is_authenticating_mode(self.mode)

    @abstractmethod
    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` (may be empty)."""

    @abstractmethod
    def decrypt(self, ciphertext: bytes) -> bytes:
        """
        Decrypt ``ciphertext``.

        Raises:
            DecryptionFailedError: If the ciphertext is malformed or,
                for authenticated modes, fails verification
        """

    def __repr__(self) -> str:
        """Safe representation without key material."""
        return f"{type(self).__name__}(cipher={self.cipher}, mode={self.mode})"


class ClassicModeHandle(CipherHandle):
    """CBC/CFB/CTR/OFB over a block cipher with an IV prefix."""

    __slots__ = ("_algorithm", "_mode_cls", "_block_size", "_padded")

    def __init__(
        self,
        mode: str,
        cipher: CipherSpec,
        key: bytes,
        mode_cls: type,
        padded: bool,
    ) -> None:
        super().__init__(mode, cipher.name)
        self._algorithm = cipher.algorithm(key)
        self._mode_cls = mode_cls
        self._block_size = cipher.block_size
        self._padded = padded

    def _context(self, iv: bytes, encrypting: bool):
        cipher = Cipher(self._algorithm, self._mode_cls(iv))
        try:
            return cipher.encryptor() if encrypting else cipher.decryptor()
        except UnsupportedAlgorithm as e:
            raise UnsupportedAlgorithmError(
                "mode", self.mode, f"mode {self.mode} is not supported with {self.cipher}"
            ) from e

    def encrypt(self, plaintext: bytes) -> bytes:
        iv = secrets.token_bytes(self._block_size)

        if self._padded:
            padder = padding.PKCS7(self._block_size * 8).padder()
            plaintext = padder.update(plaintext) + padder.finalize()

        encryptor = self._context(iv, encrypting=True)
        return iv + encryptor.update(plaintext) + encryptor.finalize()

    def decrypt(self, ciphertext: bytes) -> bytes:
        if len(ciphertext) < self._block_size:
            raise DecryptionFailedError("Ciphertext too short (missing IV)")

        iv, body = ciphertext[: self._block_size], ciphertext[self._block_size :]
        decryptor = self._context(iv, encrypting=False)

        try:
            plaintext = decryptor.update(body) + decryptor.finalize()
            if self._padded:
                unpadder = padding.PKCS7(self._block_size * 8).unpadder()
                plaintext = unpadder.update(plaintext) + unpadder.finalize()
        except ValueError as e:
            raise DecryptionFailedError(f"{self.mode} decryption failed") from e
        return plaintext


class AeadHandle(CipherHandle):
    """Authenticated mode backed by a ``cryptography`` AEAD class."""

    __slots__ = ("_primitive", "nonce")

    def __init__(self, mode: str, cipher: str, primitive: object, nonce: bytes) -> None:
        super().__init__(mode, cipher)
        self._primitive = primitive
        self.nonce = nonce

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._primitive.encrypt(self.nonce, plaintext, None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        if len(ciphertext) < AEAD_TAG_SIZE:
            raise DecryptionFailedError("Ciphertext too short (missing authentication tag)")
        try:
            return self._primitive.decrypt(self.nonce, ciphertext, None)
        except InvalidTag as e:
            raise DecryptionFailedError(f"{self.mode} authentication failed") from e


class EaxHandle(CipherHandle):
    """AES-EAX via pycryptodome."""

    __slots__ = ("_aes", "_key", "nonce")

    def __init__(self, aes_module: object, key: bytes, nonce: bytes) -> None:
        super().__init__("EAX", "AES")
        self._aes = aes_module
        self._key = key
        self.nonce = nonce

    def _new(self):
        return self._aes.new(self._key, self._aes.MODE_EAX, nonce=self.nonce, mac_len=AEAD_TAG_SIZE)

    def encrypt(self, plaintext: bytes) -> bytes:
        ciphertext, tag = self._new().encrypt_and_digest(plaintext)
        return ciphertext + tag

    def decrypt(self, ciphertext: bytes) -> bytes:
        if len(ciphertext) < AEAD_TAG_SIZE:
            raise DecryptionFailedError("Ciphertext too short (missing authentication tag)")
        body, tag = ciphertext[:-AEAD_TAG_SIZE], ciphertext[-AEAD_TAG_SIZE:]
        try:
            return self._new().decrypt_and_verify(body, tag)
        except ValueError as e:
            raise DecryptionFailedError("EAX authentication failed") from e


ModeFactory = Callable[[CipherSpec, bytes, Optional[bytes]], CipherHandle]


@dataclass(frozen=True, slots=True)
class ModeSpec:
    """
    Immutable description of a cipher mode.

    Attributes:
        name: Canonical mode name
        factory: Builds a handle from (cipher, key, nonce)
        probe: Raises PrimitiveUnavailableError if the provider is missing
        needs_nonce: Whether the handle consumes a caller-visible nonce
    """

    name: str
    factory: ModeFactory
    probe: Callable[[], object]
    needs_nonce: bool = False

    @property
    def authenticated(self) -> bool:
        return self.name in KNOWN_AUTHENTICATING_MODES


MODES: Final[Registry[ModeSpec]] = Registry("mode", validator=lambda spec: isinstance(spec, ModeSpec))


def _classic_mode_class(name: str) -> type:
    for module_name in (_DECREPIT_MODES, modes.__name__):
        try:
            module = importlib.import_module(module_name)
        except ImportError:
            continue
        cls = getattr(module, name, None)
        if cls is not None:
            return cls
    raise PrimitiveUnavailableError(f"cryptography provides no {name} mode")


def _register_classic(name: str, padded: bool) -> None:
    def factory(cipher: CipherSpec, key: bytes, nonce: Optional[bytes]) -> CipherHandle:
        return ClassicModeHandle(name, cipher, key, _classic_mode_class(name), padded)

    MODES.add(name, ModeSpec(name, factory, probe=lambda: _classic_mode_class(name)))


_register_classic("CBC", padded=True)
_register_classic("CFB", padded=False)
_register_classic("CTR", padded=False)
_register_classic("OFB", padded=False)


def _aead_class(name: str) -> type:
    cls = getattr(aead, name, None)
    if cls is None:
        raise PrimitiveUnavailableError(f"cryptography provides no {name}")
    return cls


def _require_aes(mode: str, cipher: CipherSpec) -> None:
    if normalize_name(cipher.name) != "aes":
        raise UnsupportedAlgorithmError(
            "mode", mode, f"mode {mode} requires the AES cipher (got {cipher.name})"
        )


def _register_aead(name: str, class_name: str, nonce_sizes: Tuple[int, int]) -> None:
    def factory(cipher: CipherSpec, key: bytes, nonce: Optional[bytes]) -> CipherHandle:
        _require_aes(name, cipher)
        if nonce is None:
            raise ValueError(f"{name} requires a nonce")
        try:
            primitive = _aead_class(class_name)(key)
        except UnsupportedAlgorithm as e:
            raise PrimitiveUnavailableError(f"{name} is not supported by the backend") from e
        return AeadHandle(name, cipher.name, primitive, fit_nonce(nonce, *nonce_sizes))

    def probe() -> bool:
        try:
            _aead_class(class_name)(bytes(32)).encrypt(bytes(nonce_sizes[1]), b"", None)
        except UnsupportedAlgorithm as e:
            raise PrimitiveUnavailableError(f"{name} is not supported by the backend") from e
        return True

    MODES.add(name, ModeSpec(name, factory, probe, needs_nonce=True))


_register_aead("GCM", "AESGCM", (8, 128))
_register_aead("CCM", "AESCCM", (7, 13))
_register_aead("OCB", "AESOCB3", (12, 15))


def _pycryptodome_aes() -> object:
    try:
        return importlib.import_module("Crypto.Cipher.AES")
    except ImportError as e:
        raise PrimitiveUnavailableError("EAX requires the pycryptodome distribution") from e


def _eax_factory(cipher: CipherSpec, key: bytes, nonce: Optional[bytes]) -> CipherHandle:
    _require_aes("EAX", cipher)
    if nonce is None:
        raise ValueError("EAX requires a nonce")
    return EaxHandle(_pycryptodome_aes(), key, nonce)


MODES.add("EAX", ModeSpec("EAX", _eax_factory, _pycryptodome_aes, needs_nonce=True))


def get_mode(name: str) -> ModeSpec:
    """
    Look up a concrete mode.

    Raises:
        UnsupportedAlgorithmError: For unknown names and for known
            authenticated modes without a provider (CWC)
    """
    return MODES.lookup(name)


def probe_mode(name: str) -> bool:
    """Fallback probe for every ``*mode`` category."""
    get_mode(name).probe()
    return True
