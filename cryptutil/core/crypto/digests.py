"""
Digests and MACs
================

Digest algorithms and MAC families available to the dispatcher.

Digests map a name to a ``cryptography`` ``HashAlgorithm`` factory.
Variable-width algorithms (SHAKE128/SHAKE256, BLAKE2) take a
``digest_size`` argument; SHAKE256 is what key derivation uses to
produce keys of an exact length.

MAC families are listed here by name; the dispatcher builds them because
both need a key (and HMAC a digest, CMAC a cipher) resolved per call.
"""

from __future__ import annotations

import hmac
from typing import Callable, Final, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import cmac, hashes

from cryptutil.core.crypto.ciphers import get_cipher
from cryptutil.core.crypto.registry import Registry
from cryptutil.core.errors import PrimitiveUnavailableError

DigestFactory = Callable[..., hashes.HashAlgorithm]

DIGESTS: Final[Registry[DigestFactory]] = Registry("digest")

DIGESTS.add("MD5", lambda: hashes.MD5())
DIGESTS.add("SHA-1", lambda: hashes.SHA1(), aliases=("SHA",))
DIGESTS.add("SHA-224", lambda: hashes.SHA224())
DIGESTS.add("SHA-256", lambda: hashes.SHA256())
DIGESTS.add("SHA-384", lambda: hashes.SHA384())
DIGESTS.add("SHA-512", lambda: hashes.SHA512())
DIGESTS.add("SHA3-224", lambda: hashes.SHA3_224())
DIGESTS.add("SHA3-256", lambda: hashes.SHA3_256())
DIGESTS.add("SHA3-384", lambda: hashes.SHA3_384())
DIGESTS.add("SHA3-512", lambda: hashes.SHA3_512())
DIGESTS.add("SM3", lambda: hashes.SM3())
DIGESTS.add("BLAKE2b", lambda digest_size=64: hashes.BLAKE2b(digest_size))
DIGESTS.add("BLAKE2s", lambda digest_size=32: hashes.BLAKE2s(digest_size))
DIGESTS.add("SHAKE128", lambda digest_size=32: hashes.SHAKE128(digest_size))
DIGESTS.add("SHAKE256", lambda digest_size=64: hashes.SHAKE256(digest_size))

# MAC family name -> short description; construction lives in the dispatcher
MAC_FAMILIES: Final[dict[str, str]] = {
    "HMAC": "keyed-hash MAC over a digest",
    "CMAC": "cipher-based MAC over a block cipher",
}


def hash_algorithm(name: str, **digest_args: object) -> hashes.HashAlgorithm:
    """
    Instantiate the digest algorithm registered as ``name``.

    Raises:
        UnsupportedAlgorithmError: If no digest is registered under ``name``
        TypeError: If ``digest_args`` do not apply to the algorithm
    """
    return DIGESTS.lookup(name)(**digest_args)


def new_digest(name: str, **digest_args: object) -> hashes.Hash:
    """
    Return a fresh hashing context.

    Raises:
        PrimitiveUnavailableError: If the backend does not support the digest
    """
    try:
        return hashes.Hash(hash_algorithm(name, **digest_args))
    except UnsupportedAlgorithm as e:
        raise PrimitiveUnavailableError(f"digest {name} is not supported by the backend") from e


def probe_digest(name: str) -> bool:
    """Fallback probe for the ``digest`` category."""
    new_digest(name).finalize()
    return True


def probe_mac(name: str) -> bool:
    """
    Fallback probe for the ``mac`` category.

    HMAC only needs a digest; CMAC is checked against the backend with AES.
    """
    family = name.upper()
    if family == "HMAC":
        return True
    if family == "CMAC":
        try:
            cmac.CMAC(get_cipher("AES").algorithm(bytes(16))).finalize()
        except UnsupportedAlgorithm as e:
            raise PrimitiveUnavailableError("CMAC is not supported by the backend") from e
        return True
    raise PrimitiveUnavailableError(f"no provider for MAC {name}")


def constant_time_compare(a: Union[bytes, str], b: Union[bytes, str]) -> bool:
    """
    Compare two digests without leaking timing information.

    Text digests (already encoded) are compared as UTF-8 bytes so a
    ``str`` and a ``bytes`` rendering of the same value still match.
    """
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    return hmac.compare_digest(a, b)
