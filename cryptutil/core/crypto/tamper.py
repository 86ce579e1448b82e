"""
Tamper-Evident Envelopes
========================

Wraps a packed data envelope so that any modification is detected.

Envelope Types:
    mac   (1)  MAC over the packed envelope, which travels in the clear
    aead  (2)  packed envelope encrypted with an authenticated mode

Formats (all integers big-endian):
    TYPE (1) | BODY
    MAC body:  TAG_LEN (2) | TAG | PACKED_ENVELOPE
    AEAD body: NONCE_LEN (2) | NONCE | CIPHERTEXT

Round Trip:
    data → pack → packed envelope → protect (mac|aead) → tamper-evident envelope
    tamper-evident envelope → verify + recover → packed envelope → unpack → data

Security Properties:
    - Verification always happens before the payload is unpacked
    - Any failure aborts the whole chain; there is no partial recovery
    - MAC tags are compared in constant time
    - A fresh nonce is generated for every AEAD envelope unless one is forced

WARNING:
    With ``fatal=False`` a failed verification returns None instead of
    raising. Callers must check for None before trusting the result.
"""

from __future__ import annotations

import enum
import logging
import struct
from dataclasses import dataclass
from typing import Any, Dict, Final, Optional, Tuple

from cryptutil.core.crypto.digests import constant_time_compare
from cryptutil.core.crypto.dispatch import AlgorithmDispatcher
from cryptutil.core.crypto.envelope import pack_data, unpack_data
from cryptutil.core.crypto.modes import SYMBOLIC_MODES, is_authenticating_mode
from cryptutil.core.crypto.params import ParameterResolver, Params
from cryptutil.core.crypto.serializers import DEFAULT_SERIALIZER
from cryptutil.core.errors import (
    AuthenticatedModeRequiredError,
    MalformedEnvelopeError,
    TamperDetectedError,
    UnknownEnvelopeTypeError,
)

PREFIX_FORMAT: Final[str] = ">H"
PREFIX_SIZE: Final[int] = struct.calcsize(PREFIX_FORMAT)
MAX_PREFIXED_SIZE: Final[int] = 0xFFFF

_log = logging.getLogger("cryptutil.tamper")


class EnvelopeType(enum.IntEnum):
    """Type tag of a tamper-evident envelope."""

    MAC = 1
    AEAD = 2


def pack_prefixed(prefix: bytes, rest: bytes) -> bytes:
    """``len(prefix) (u16) | prefix | rest``."""
    if len(prefix) > MAX_PREFIXED_SIZE:
        raise ValueError(f"Length-prefixed field too long ({len(prefix)} > {MAX_PREFIXED_SIZE} bytes)")
    return struct.pack(PREFIX_FORMAT, len(prefix)) + prefix + rest


def unpack_prefixed(data: bytes) -> Tuple[bytes, bytes]:
    """
    Split ``len (u16) | prefix | rest``.

    Raises:
        MalformedEnvelopeError: If the data is shorter than the prefix claims
    """
    if len(data) < PREFIX_SIZE:
        raise MalformedEnvelopeError("Envelope body too short for length prefix")
    (length,) = struct.unpack_from(PREFIX_FORMAT, data, 0)
    end = PREFIX_SIZE + length
    if len(data) < end:
        raise MalformedEnvelopeError(
            f"Length-prefixed field truncated (need {length} bytes, have {len(data) - PREFIX_SIZE})"
        )
    return data[PREFIX_SIZE:end], data[end:]


@dataclass(frozen=True, slots=True)
class TamperEnvelope:
    """Type tag plus body."""

    type: EnvelopeType
    body: bytes

    def to_bytes(self) -> bytes:
        return struct.pack(">B", self.type) + self.body

    @classmethod
    def from_bytes(cls, data: bytes) -> TamperEnvelope:
        """
        Raises:
            MalformedEnvelopeError: If ``data`` is empty
            UnknownEnvelopeTypeError: If the type tag is not 1 or 2
        """
        data = bytes(data)
        if not data:
            raise MalformedEnvelopeError("Empty tamper-proof string")
        try:
            envelope_type = EnvelopeType(data[0])
        except ValueError:
            raise UnknownEnvelopeTypeError(data[0]) from None
        return cls(type=envelope_type, body=data[1:])

    def __repr__(self) -> str:
        """Safe representation."""
        return f"TamperEnvelope({self.type.name.lower()}, body_len={len(self.body)})"


@dataclass(frozen=True, slots=True)
class MacBody:
    """MAC tag and the packed envelope it covers."""

    tag: bytes
    message: bytes

    def to_bytes(self) -> bytes:
        return pack_prefixed(self.tag, self.message)

    @classmethod
    def from_bytes(cls, data: bytes) -> MacBody:
        tag, message = unpack_prefixed(data)
        return cls(tag=tag, message=message)


@dataclass(frozen=True, slots=True)
class AeadBody:
    """Nonce and the authenticated ciphertext of the packed envelope."""

    nonce: bytes
    ciphertext: bytes

    def to_bytes(self) -> bytes:
        return pack_prefixed(self.nonce, self.ciphertext)

    @classmethod
    def from_bytes(cls, data: bytes) -> AeadBody:
        nonce, ciphertext = unpack_prefixed(data)
        return cls(nonce=nonce, ciphertext=ciphertext)


class TamperProofProtocol:
    """
    Builds and verifies tamper-evident envelopes for one profile.

    Args:
        dispatcher: The profile's algorithm dispatcher
    """

    __slots__ = ("_dispatcher",)

    def __init__(self, dispatcher: AlgorithmDispatcher) -> None:
        self._dispatcher = dispatcher

    @property
    def resolver(self) -> ParameterResolver:
        return self._dispatcher.resolver

    def serializer(self, params: Params) -> str:
        return self.resolver.configured(params, "serializer") or DEFAULT_SERIALIZER

    # -- mode confirmation -----------------------------------------------

    def authenticated_params(self, params: Params) -> Dict[str, Any]:
        """
        Return ``params`` with ``mode`` set to a confirmed authenticated mode.

        Selection order: explicit ``authenticated_mode``; explicit ``mode``;
        configured ``authenticated_mode``; configured ``mode``; the
        ``authenticated_mode`` fallback list. Whatever the source, the
        selected mode must be authenticated. ``mode_is_authenticated``
        overrides that check in either direction.

        Raises:
            AuthenticatedModeRequiredError: If the selected mode is not authenticated
        """
        resolved = dict(params)
        resolved.pop("authenticated_mode", None)
        defaults = self.resolver.defaults

        if params.get("authenticated_mode") is not None:
            mode = params["authenticated_mode"]
        elif params.get("mode") is not None:
            mode = params["mode"]
        elif defaults.get_default("authenticated_mode") is not None:
            mode = defaults.get_default("authenticated_mode")
        elif defaults.get_default("mode") is not None:
            mode = defaults.get_default("mode")
        else:
            mode = self.resolver.resolve(params, "authenticated_mode")

        override = params.get("mode_is_authenticated")
        confirmed = bool(override) if override is not None else self._is_authenticated(mode)
        if not confirmed:
            raise AuthenticatedModeRequiredError(mode)

        resolved["mode"] = mode
        return resolved

    @staticmethod
    def _is_authenticated(mode: str) -> bool:
        return is_authenticating_mode(mode) or SYMBOLIC_MODES.get(mode.lower()) == "authenticated_mode"

    # -- aead ------------------------------------------------------------

    def aead_protect(self, string: bytes, params: Params) -> bytes:
        """Encrypt ``string`` under a fresh (or forced) nonce; return the AEAD body."""
        resolved = self.authenticated_params(params)
        nonce = self._dispatcher.keys.derive_nonce(resolved)
        resolved["nonce"] = nonce

        handle = self._dispatcher.build_cipher(resolved)
        _log.debug("AEAD protecting %d bytes with %s-%s", len(string), handle.cipher, handle.mode)
        return AeadBody(nonce, handle.encrypt(string)).to_bytes()

    def aead_recover(self, body: bytes, params: Params) -> bytes:
        """
        Decrypt and authenticate an AEAD body.

        Raises:
            TamperDetectedError: On malformed framing or failed authentication
        """
        resolved = self.authenticated_params(params)
        try:
            parsed = AeadBody.from_bytes(body)
        except MalformedEnvelopeError as e:
            raise TamperDetectedError(f"Malformed AEAD envelope: {e}") from e
        if not parsed.nonce:
            raise TamperDetectedError("AEAD envelope carries an empty nonce")

        resolved["nonce"] = parsed.nonce
        return self._dispatcher.build_cipher(resolved).decrypt(parsed.ciphertext)

    # -- mac -------------------------------------------------------------

    def mac_digest(self, string: bytes, params: Params) -> bytes:
        mac = self._dispatcher.build_mac(params)
        mac.update(string)
        return mac.finalize()

    def mac_protect(self, string: bytes, params: Params) -> bytes:
        """Return the MAC body for ``string``."""
        return MacBody(self.mac_digest(string, params), string).to_bytes()

    def mac_recover(self, body: bytes, params: Params) -> bytes:
        """
        Verify a MAC body and return the covered packed envelope.

        Raises:
            TamperDetectedError: On malformed framing or tag mismatch
        """
        try:
            parsed = MacBody.from_bytes(body)
        except MalformedEnvelopeError as e:
            raise TamperDetectedError(f"Malformed MAC envelope: {e}") from e

        expected = self.mac_digest(parsed.message, params)
        if not constant_time_compare(expected, parsed.tag):
            raise TamperDetectedError("MAC verification failed")
        return parsed.message

    # -- envelopes -------------------------------------------------------

    def should_encrypt(self, params: Params) -> bool:
        """Explicit ``encrypt``, else not ``tamper_proof_unencrypted``."""
        encrypt = params.get("encrypt")
        if encrypt is not None:
            return bool(encrypt)
        return not self.resolver.flag(params, "tamper_proof_unencrypted")

    def tamper_proof_string(self, string: bytes, params: Params) -> bytes:
        """Protect an already packed string."""
        if self.should_encrypt(params):
            envelope = TamperEnvelope(EnvelopeType.AEAD, self.aead_protect(string, params))
        else:
            envelope = TamperEnvelope(EnvelopeType.MAC, self.mac_protect(string, params))
        return envelope.to_bytes()

    def tamper_proof(self, data: Any, params: Params) -> bytes:
        """Pack ``data`` and protect it."""
        return self.tamper_proof_string(pack_data(data, self.serializer(params)), params)

    def thaw_tamper_proof_string(self, string: bytes, params: Params) -> Optional[bytes]:
        """
        Verify a tamper-evident envelope and return the packed string.

        Raises:
            UnknownEnvelopeTypeError: If the type tag is unknown
            TamperDetectedError: If verification fails and ``fatal`` is not False
        """
        envelope = TamperEnvelope.from_bytes(string)
        fatal = params.get("fatal")
        fatal = True if fatal is None else bool(fatal)

        try:
            if envelope.type is EnvelopeType.MAC:
                return self.mac_recover(envelope.body, params)
            return self.aead_recover(envelope.body, params)
        except TamperDetectedError as e:
            _log.warning("Tamper-proof %s envelope failed verification: %s",
                         envelope.type.name.lower(), e)
            if fatal:
                raise
            return None

    def thaw_tamper_proof(self, string: bytes, params: Params) -> Any:
        """Verify, then unpack. Returns None for unverified input when not fatal."""
        packed = self.thaw_tamper_proof_string(string, params)
        if packed is None:
            return None
        return unpack_data(packed, self.serializer(params))
