"""
Algorithm Dispatch
==================

Maps resolved algorithm names to constructed primitives.

Dispatch is two-tiered: a symbolic name (``stream``/``block``/
``authenticated`` modes, ``uri``/``alphanumerical``/``printable``
encodings) is first resolved to a concrete name through the parameter
resolver, then the concrete name is looked up in its registry. Unknown
names raise ``UnsupportedAlgorithmError``; nothing falls back silently
at this stage.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Final, Mapping, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import cmac, hashes, hmac

from cryptutil.core.crypto.ciphers import CipherSpec, get_cipher, probe_cipher
from cryptutil.core.crypto.digests import hash_algorithm, new_digest, probe_digest, probe_mac
from cryptutil.core.crypto.fallback import Probe
from cryptutil.core.crypto.keys import KeyDeriver
from cryptutil.core.crypto.modes import SYMBOLIC_MODES, CipherHandle, get_mode, probe_mode
from cryptutil.core.crypto.params import ParameterResolver, Params
from cryptutil.core.crypto.registry import Registry
from cryptutil.core.crypto.text_encoding import SYMBOLIC_ENCODINGS, probe_encoding
from cryptutil.core.errors import MissingParameterError, PrimitiveUnavailableError

MacHandle = Union[hmac.HMAC, cmac.CMAC]
MacBuilder = Callable[["AlgorithmDispatcher", Dict[str, Any]], MacHandle]

# HMAC keys are literal unless the caller forces derivation; then this is the size
HMAC_DERIVED_KEY_SIZE: Final[int] = 64

_log = logging.getLogger("cryptutil.dispatch")


def default_probes() -> Mapping[str, Probe]:
    """Probe per fallback category type."""
    return {
        "cipher": probe_cipher,
        "mode": probe_mode,
        "digest": probe_digest,
        "mac": probe_mac,
        "encoding": probe_encoding,
    }


MACS: Final[Registry[MacBuilder]] = Registry("mac")


@MACS.register("HMAC")
def _build_hmac(dispatcher: AlgorithmDispatcher, params: Dict[str, Any]) -> MacHandle:
    digest = dispatcher.resolver.resolve(params, "digest")
    algorithm = hash_algorithm(digest, **params.get("digest_args", {}))

    # HMAC does its own key processing; derivation only when explicitly asked
    key_params = {"key_size": HMAC_DERIVED_KEY_SIZE, **params}
    if params.get("literal_key") is None:
        key_params["literal_key"] = True
    key = dispatcher.keys.derive_key(key_params)

    try:
        return hmac.HMAC(key, algorithm)
    except UnsupportedAlgorithm as e:
        raise PrimitiveUnavailableError(f"HMAC-{digest} is not supported by the backend") from e


@MACS.register("CMAC")
def _build_cmac(dispatcher: AlgorithmDispatcher, params: Dict[str, Any]) -> MacHandle:
    params = dispatcher.resolver.resolve_all(params, "cipher")
    cipher = get_cipher(params["cipher"])
    key = dispatcher.keys.derive_key(params)

    try:
        return cmac.CMAC(cipher.algorithm(key))
    except UnsupportedAlgorithm as e:
        raise PrimitiveUnavailableError(f"CMAC-{cipher.name} is not supported by the backend") from e


class AlgorithmDispatcher:
    """
    Builds cipher, digest and MAC objects for one profile.

    Args:
        resolver: The profile's parameter resolver
        keys: The profile's key/nonce deriver
    """

    __slots__ = ("resolver", "keys")

    def __init__(self, resolver: ParameterResolver, keys: KeyDeriver) -> None:
        self.resolver = resolver
        self.keys = keys

    def resolve_mode(self, params: Params) -> str:
        """Resolve ``mode`` to a concrete mode name."""
        mode = self.resolver.resolve(params, "mode")
        symbolic = SYMBOLIC_MODES.get(mode.lower())
        if symbolic is not None:
            mode = self.resolver.resolve(params, symbolic)
            _log.debug("Symbolic mode resolved to %s", mode)
        return mode

    def build_cipher(self, params: Params) -> CipherHandle:
        """
        Construct a cipher handle.

        Authenticated modes need a nonce (explicit or default); use
        ``authenticated_encrypt_string`` to have one generated.

        Raises:
            UnsupportedAlgorithmError: If the mode or cipher is unknown
            MissingParameterError: If the key (or a required nonce) is missing
        """
        mode = get_mode(self.resolve_mode(params))
        params = self.resolver.resolve_all(params, "cipher")
        cipher: CipherSpec = get_cipher(params["cipher"])

        nonce = None
        if mode.needs_nonce:
            nonce = self.keys.configured_nonce(params)
            if nonce is None:
                raise MissingParameterError(
                    "nonce", f"Mode {mode.name} requires a non-empty 'nonce' parameter"
                )

        key = self.keys.derive_key(params)
        _log.debug("Building %s-%s cipher", cipher.name, mode.name)
        return mode.factory(cipher, key, nonce)

    def build_digest(self, params: Params) -> hashes.Hash:
        """Construct a hashing context for the resolved digest."""
        digest = self.resolver.resolve(params, "digest")
        return new_digest(digest, **params.get("digest_args", {}))

    def build_mac(self, params: Params) -> MacHandle:
        """
        Construct a MAC context for the resolved MAC family.

        Raises:
            UnsupportedAlgorithmError: If the MAC family is unknown
        """
        mac = self.resolver.resolve(params, "mac")
        builder = MACS.lookup(mac)
        _log.debug("Building %s", mac)
        return builder(self, dict(params))

    def resolve_encoding(self, params: Params) -> str:
        """Resolve ``encoding`` to a concrete encoding name."""
        encoding = self.resolver.resolve(params, "encoding")
        symbolic = SYMBOLIC_ENCODINGS.get(encoding.lower())
        if symbolic is not None:
            encoding = self.resolver.resolve(params, symbolic)
        return encoding
