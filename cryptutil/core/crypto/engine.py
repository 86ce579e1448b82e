"""
CryptUtil Engine
================

One configuration profile bundling the whole stack:

    call parameters
        ↓ ParameterResolver (explicit → default → fallback list)
    resolved names
        ↓ KeyDeriver (literal or SHAKE256-stretched key, nonce)
    key / nonce bytes
        ↓ AlgorithmDispatcher
    cipher / digest / MAC handle
        ↓ envelope codec / tamper-evident protocol
    output bytes

Every operation takes its parameters as keyword arguments. Anything not
passed is taken from the profile's defaults, and algorithm names not set
there are chosen by the fallback lists.

Security Properties:
    - Profiles never share defaults; the probe cache is the only shared state
    - Verification failures raise unless ``fatal=False`` is passed
    - Digest and MAC comparisons are constant time

WARNING:
    No secure defaults are chosen for you. In particular the default mode
    list starts with unauthenticated CFB; use ``tamper_proof`` or
    ``authenticated_encrypt_string`` when integrity matters.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes

from cryptutil.core.config import CryptoDefaults, UtilConfig
from cryptutil.core.crypto import envelope, text_encoding
from cryptutil.core.crypto.digests import constant_time_compare
from cryptutil.core.crypto.dispatch import AlgorithmDispatcher, MacHandle, default_probes
from cryptutil.core.crypto.fallback import FallbackResolver, ProbeCache
from cryptutil.core.crypto.keys import KeyDeriver, to_bytes
from cryptutil.core.crypto.modes import CipherHandle
from cryptutil.core.crypto.params import ParameterResolver
from cryptutil.core.crypto.tamper import TamperProofProtocol
from cryptutil.core.errors import MissingParameterError, TamperDetectedError

Text = Union[str, bytes]

_log = logging.getLogger("cryptutil.engine")


def _require(value: Any, name: str) -> Any:
    if value is None:
        raise MissingParameterError(name)
    return value


def _named_encoder(encoding: str) -> Callable[..., str]:
    def encode_string(self: CryptUtil, string: bytes, **params: Any) -> str:
        return self.encode_string(string, **{**params, "encoding": encoding})

    encode_string.__name__ = f"encode_string_{encoding}"
    encode_string.__doc__ = f"``encode_string`` with ``encoding={encoding!r}``."
    return encode_string


def _named_decoder(encoding: str) -> Callable[..., bytes]:
    def decode_string(self: CryptUtil, string: Text, **params: Any) -> bytes:
        return self.decode_string(string, **{**params, "encoding": encoding})

    decode_string.__name__ = f"decode_string_{encoding}"
    decode_string.__doc__ = f"``decode_string`` with ``encoding={encoding!r}``."
    return decode_string


class CryptUtil:
    """
    Crypto policy and framing for one configuration profile.

    Usage:
        util = CryptUtil(key=b"my secret")

        # Tamper-evident round trip (AEAD by default)
        blob = util.tamper_proof({"user": 42})
        data = util.thaw_tamper_proof(blob)

        # MAC-only envelope, readable but not modifiable
        blob = util.tamper_proof(b"hello", encrypt=False)

        # Plain primitives with fallback-chosen algorithms
        ciphertext = util.encrypt_string(b"data", mode="CBC")
        digest = util.digest_string(b"data", encode=True)

    Args:
        defaults: Profile defaults (a fresh empty set when omitted)
        disable_fallback: Only ever try the first candidate of a fallback list
        fallback_lists: Per-category fallback list overrides
        probe_cache: Probe cache (defaults to the process-wide one)
        **default_values: Extra defaults applied on top of ``defaults``
    """

    __slots__ = ("_resolver", "_keys", "_dispatcher", "_tamper")

    def __init__(
        self,
        defaults: Optional[CryptoDefaults] = None,
        *,
        disable_fallback: bool = False,
        fallback_lists: Optional[Mapping[str, Iterable[str]]] = None,
        probe_cache: Optional[ProbeCache] = None,
        **default_values: Any,
    ) -> None:
        defaults = defaults if defaults is not None else CryptoDefaults()
        for name, value in default_values.items():
            defaults.set_default(name, value)

        fallback = FallbackResolver(default_probes(), probe_cache, disable_fallback)
        self._resolver = ParameterResolver(defaults, fallback)
        for category, candidates in (fallback_lists or {}).items():
            self._resolver.set_fallback_list(category, candidates)

        self._keys = KeyDeriver(self._resolver)
        self._dispatcher = AlgorithmDispatcher(self._resolver, self._keys)
        self._tamper = TamperProofProtocol(self._dispatcher)

    @classmethod
    def from_config(cls, config: UtilConfig, probe_cache: Optional[ProbeCache] = None) -> CryptUtil:
        """Build a profile from an immutable UtilConfig."""
        return cls(
            config.make_defaults(),
            disable_fallback=config.fallback.disable_fallback,
            fallback_lists=config.fallback.lists,
            probe_cache=probe_cache,
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def defaults(self) -> CryptoDefaults:
        return self._resolver.defaults

    @property
    def disable_fallback(self) -> bool:
        return self._resolver.fallback_resolver.disable_fallback

    @disable_fallback.setter
    def disable_fallback(self, value: bool) -> None:
        self._resolver.fallback_resolver.disable_fallback = bool(value)

    def set_default(self, name: str, value: Any) -> None:
        self.defaults.set_default(name, value)

    def get_default(self, name: str) -> Any:
        return self.defaults.get_default(name)

    def has_default(self, name: str) -> bool:
        return self.defaults.has_default(name)

    def clear_default(self, name: str) -> None:
        self.defaults.clear_default(name)

    def fallback_list(self, category: str) -> Tuple[str, ...]:
        return self._resolver.fallback_list(category)

    def set_fallback_list(self, category: str, candidates: Iterable[str]) -> None:
        self._resolver.set_fallback_list(category, candidates)

    def clear_fallback_list(self, category: str) -> None:
        self._resolver.clear_fallback_list(category)

    def fallback(self, category: str) -> str:
        """First usable candidate of ``category``'s fallback list."""
        return self._resolver.fallback(category)

    def resolve(self, name: str, **params: Any) -> Any:
        """Resolve one parameter the way operations do."""
        return self._resolver.resolve(params, name)

    # ------------------------------------------------------------------
    # Keys and nonces
    # ------------------------------------------------------------------

    def process_key(self, key: Optional[Text] = None, **params: Any) -> bytes:
        """Key bytes an operation with these parameters would use."""
        if key is not None:
            params["key"] = key
        return self._keys.derive_key(params)

    def process_nonce(self, nonce: Optional[Text] = None, **params: Any) -> bytes:
        """Given (or default) nonce, else a fresh 128-bit one."""
        if nonce is not None:
            params["nonce"] = nonce
        return self._keys.derive_nonce(params)

    # ------------------------------------------------------------------
    # Primitive objects
    # ------------------------------------------------------------------

    def cipher_object(self, **params: Any) -> CipherHandle:
        return self._dispatcher.build_cipher(params)

    def digest_object(self, **params: Any) -> hashes.Hash:
        return self._dispatcher.build_digest(params)

    def mac_object(self, **params: Any) -> MacHandle:
        return self._dispatcher.build_mac(params)

    # ------------------------------------------------------------------
    # Text encodings
    # ------------------------------------------------------------------

    def _should(self, params: Mapping[str, Any], flag: str) -> bool:
        value = params.get(flag)
        if value is not None:
            return bool(value)
        if params.get("encoding") is not None:
            return True
        return bool(self.defaults.get_default("encode"))

    def maybe_encode(self, string: bytes, **params: Any) -> Text:
        """Encode when ``encode`` (or an explicit ``encoding``) asks for it."""
        if self._should(params, "encode"):
            return self.encode_string(string, **params)
        return string

    def maybe_decode(self, string: Text, **params: Any) -> bytes:
        """Decode when ``decode`` (or an explicit ``encoding``) asks for it."""
        if self._should(params, "decode"):
            return self.decode_string(string, **params)
        return to_bytes(string, "string")

    def encode_string(self, string: bytes, **params: Any) -> str:
        """Encode bytes with the resolved ``encoding``."""
        string = to_bytes(_require(string, "string"), "string")
        return text_encoding.encode(string, self._dispatcher.resolve_encoding(params))

    def decode_string(self, string: Text, **params: Any) -> bytes:
        """Decode text with the resolved ``encoding``."""
        return text_encoding.decode(_require(string, "string"), self._dispatcher.resolve_encoding(params))

    encode_string_hex = _named_encoder("hex")
    encode_string_base64 = _named_encoder("base64")
    encode_string_base64_wrapped = _named_encoder("base64_wrapped")
    encode_string_base32 = _named_encoder("base32")
    encode_string_uri_base64 = _named_encoder("uri_base64")
    encode_string_uri_escape = _named_encoder("uri_escape")
    encode_string_uri = _named_encoder("uri")
    encode_string_alphanumerical = _named_encoder("alphanumerical")
    encode_string_printable = _named_encoder("printable")

    decode_string_hex = _named_decoder("hex")
    decode_string_base64 = _named_decoder("base64")
    decode_string_base32 = _named_decoder("base32")
    decode_string_uri_base64 = _named_decoder("uri_base64")
    decode_string_uri_escape = _named_decoder("uri_escape")
    decode_string_uri = _named_decoder("uri")
    decode_string_alphanumerical = _named_decoder("alphanumerical")
    decode_string_printable = _named_decoder("printable")

    # ------------------------------------------------------------------
    # Encryption, digests, MACs
    # ------------------------------------------------------------------

    def encrypt_string(self, string: Text, **params: Any) -> Text:
        """Encrypt with the resolved cipher and mode; optionally encode the result."""
        string = to_bytes(_require(string, "string"), "string")
        ciphertext = self.cipher_object(**params).encrypt(string)
        return self.maybe_encode(ciphertext, **params)

    def decrypt_string(self, string: Text, **params: Any) -> bytes:
        """Inverse of ``encrypt_string`` (pass ``decode=True`` for encoded input)."""
        ciphertext = self.maybe_decode(_require(string, "string"), **params)
        return self.cipher_object(**params).decrypt(ciphertext)

    def digest_string(self, string: Text, **params: Any) -> Text:
        digest = self.digest_object(**params)
        digest.update(to_bytes(_require(string, "string"), "string"))
        return self.maybe_encode(digest.finalize(), **params)

    def mac_digest_string(self, string: Text, **params: Any) -> Text:
        mac = self.mac_object(**params)
        mac.update(to_bytes(_require(string, "string"), "string"))
        return self.maybe_encode(mac.finalize(), **params)

    def verify_hash(self, string: Text, hash: Text, fatal: bool = False, **params: Any) -> bool:
        """
        Check ``hash`` against the digest of ``string`` in constant time.

        Raises:
            TamperDetectedError: On mismatch when ``fatal`` is true
        """
        _require(hash, "hash")
        return self._verify(self.digest_string(string, **params), hash, fatal, "Digest")

    verify_digest = verify_hash

    def verify_mac(self, string: Text, digest: Text, fatal: bool = False, **params: Any) -> bool:
        """
        Check a MAC tag against ``string`` in constant time.

        Raises:
            TamperDetectedError: On mismatch when ``fatal`` is true
        """
        _require(digest, "digest")
        return self._verify(self.mac_digest_string(string, **params), digest, fatal, "MAC")

    @staticmethod
    def _verify(computed: Text, expected: Text, fatal: bool, what: str) -> bool:
        if constant_time_compare(computed, expected):
            return True
        _log.warning("%s verification failed", what)
        if fatal:
            raise TamperDetectedError(f"{what} verification failed")
        return False

    # ------------------------------------------------------------------
    # Serialization and envelopes
    # ------------------------------------------------------------------

    def serializer(self, **params: Any) -> str:
        return self._tamper.serializer(params)

    def freeze_data(self, data: Any, **params: Any) -> bytes:
        return envelope.freeze_data(data, self.serializer(**params))

    def thaw_data(self, data: bytes, **params: Any) -> Any:
        return envelope.thaw_data(data, self.serializer(**params))

    def pack_data(self, data: Any, **params: Any) -> bytes:
        return envelope.pack_data(data, self.serializer(**params))

    def unpack_data(self, packed: bytes, **params: Any) -> Any:
        """
        WARNING:
            Never call this on untrusted input; use ``thaw_tamper_proof``.
        """
        return envelope.unpack_data(packed, self.serializer(**params))

    # ------------------------------------------------------------------
    # Tamper-evident envelopes
    # ------------------------------------------------------------------

    def authenticated_encrypt_string(self, string: Text, **params: Any) -> Text:
        """
        Encrypt with an authenticated mode under a fresh nonce.

        Output is ``NONCE_LEN (2) | NONCE | CIPHERTEXT``, optionally encoded.

        Raises:
            AuthenticatedModeRequiredError: If the selected mode is not authenticated
        """
        string = to_bytes(_require(string, "string"), "string")
        return self.maybe_encode(self._tamper.aead_protect(string, params), **params)

    def authenticated_decrypt_string(self, string: Text, **params: Any) -> bytes:
        """
        Inverse of ``authenticated_encrypt_string``.

        Raises:
            TamperDetectedError: On malformed input or failed authentication
        """
        body = self.maybe_decode(_require(string, "string"), **params)
        return self._tamper.aead_recover(body, params)

    def tamper_proof(self, data: Any, **params: Any) -> bytes:
        """
        Pack ``data`` into a tamper-evident envelope.

        ``encrypt`` (default: not ``tamper_proof_unencrypted``) selects an
        AEAD envelope over a MAC envelope.
        """
        return self._tamper.tamper_proof(data, params)

    def tamper_proof_string(self, string: bytes, **params: Any) -> bytes:
        """Protect an already packed string."""
        return self._tamper.tamper_proof_string(to_bytes(_require(string, "string"), "string"), params)

    def thaw_tamper_proof(self, string: bytes, **params: Any) -> Any:
        """
        Verify and unpack a ``tamper_proof`` envelope.

        Returns None instead of raising on failed verification when
        ``fatal=False`` is passed.

        Raises:
            TamperDetectedError: On failed verification
            UnknownEnvelopeTypeError: On an unknown type tag
            IncompatibleVersionError: If the verified payload has another format version
        """
        return self._tamper.thaw_tamper_proof(to_bytes(_require(string, "string"), "string"), params)

    def thaw_tamper_proof_string(self, string: bytes, **params: Any) -> Optional[bytes]:
        """Verify a tamper-evident envelope and return the packed string."""
        return self._tamper.thaw_tamper_proof_string(to_bytes(_require(string, "string"), "string"), params)

    def __repr__(self) -> str:
        return f"CryptUtil(defaults={self.defaults!r}, disable_fallback={self.disable_fallback})"
