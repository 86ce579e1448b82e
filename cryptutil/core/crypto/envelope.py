"""
Data Envelope
=============

Versioned framing for arbitrary data.

Format (all integers big-endian):
    VERSION (2) | FLAGS (2) | PAYLOAD_LEN (4) | PAYLOAD

Flags:
    bit 0  SERIALIZED  payload is a serialized structured value
    other  reserved; kept on decode, ignored for interpretation

Raw byte strings (``bytes``, ``bytearray``, ``memoryview``) are stored
verbatim. Everything else is frozen by the named serializer and flagged.

WARNING:
    This codec authenticates nothing. Decoding untrusted bytes (especially
    with the pickle serializer) must only happen after the tamper-evident
    layer has verified them.
"""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass
from typing import Any, Final

from cryptutil.core.crypto.serializers import DEFAULT_SERIALIZER, get_serializer
from cryptutil.core.errors import IncompatibleVersionError, MalformedEnvelopeError

PACK_FORMAT_VERSION: Final[int] = 1
HEADER_FORMAT: Final[str] = ">HHI"
HEADER_SIZE: Final[int] = struct.calcsize(HEADER_FORMAT)  # 8 bytes
VERSION_SIZE: Final[int] = 2


class EnvelopeFlags(enum.IntFlag):
    """Flag bits of the data envelope."""

    NONE = 0
    SERIALIZED = 1


def is_raw(data: Any) -> bool:
    """True if ``data`` is stored verbatim rather than serialized."""
    return isinstance(data, (bytes, bytearray, memoryview))


@dataclass(frozen=True, slots=True)
class DataEnvelope:
    """
    Immutable data envelope.

    Attributes:
        version: Format version (``PACK_FORMAT_VERSION`` when produced here)
        flags: Raw flag bits, unknown bits included
        payload: Raw or serialized payload bytes
    """

    version: int
    flags: int
    payload: bytes

    @property
    def serialized(self) -> bool:
        return bool(self.flags & EnvelopeFlags.SERIALIZED)

    def to_bytes(self) -> bytes:
        """Serialize the envelope."""
        return struct.pack(HEADER_FORMAT, self.version, self.flags, len(self.payload)) + self.payload

    @classmethod
    def from_bytes(cls, data: bytes) -> DataEnvelope:
        """
        Parse an envelope without checking its version.

        Raises:
            MalformedEnvelopeError: If the data is truncated or has trailing bytes
        """
        data = bytes(data)
        if len(data) < HEADER_SIZE:
            raise MalformedEnvelopeError("Packed data too short for envelope header")

        version, flags, length = struct.unpack_from(HEADER_FORMAT, data, 0)
        payload = data[HEADER_SIZE:]
        if len(payload) != length:
            raise MalformedEnvelopeError(
                f"Envelope payload length mismatch (header says {length}, found {len(payload)})"
            )

        return cls(version=version, flags=flags, payload=payload)

    def __repr__(self) -> str:
        """Safe representation."""
        return f"DataEnvelope(v{self.version}, flags={self.flags:#06x}, payload_len={len(self.payload)})"


def freeze_data(data: Any, serializer: str = DEFAULT_SERIALIZER) -> bytes:
    """Serialize a structured value with the named serializer."""
    return get_serializer(serializer).freeze(data)


def thaw_data(data: bytes, serializer: str = DEFAULT_SERIALIZER) -> Any:
    """Deserialize a structured value with the named serializer."""
    return get_serializer(serializer).thaw(data)


def pack_data(data: Any, serializer: str = DEFAULT_SERIALIZER) -> bytes:
    """
    Wrap ``data`` in a current-version envelope.

    Example:
        >>> pack_data(b"hello").hex()
        '000100000000000568656c6c6f'
    """
    if is_raw(data):
        envelope = DataEnvelope(PACK_FORMAT_VERSION, int(EnvelopeFlags.NONE), bytes(data))
    else:
        envelope = DataEnvelope(
            PACK_FORMAT_VERSION, int(EnvelopeFlags.SERIALIZED), freeze_data(data, serializer)
        )
    return envelope.to_bytes()


def check_version(version: int) -> None:
    """Raise IncompatibleVersionError unless ``version`` is current."""
    if version != PACK_FORMAT_VERSION:
        raise IncompatibleVersionError(PACK_FORMAT_VERSION, version)


def unpack_data(packed: bytes, serializer: str = DEFAULT_SERIALIZER) -> Any:
    """
    Recover the value stored by ``pack_data``.

    Raises:
        MalformedEnvelopeError: If the framing is broken
        IncompatibleVersionError: If the envelope version is not current
    """
    packed = bytes(packed)

    # Version first: other versions may frame the rest differently
    if len(packed) >= VERSION_SIZE:
        check_version(struct.unpack_from(">H", packed, 0)[0])

    envelope = DataEnvelope.from_bytes(packed)

    if envelope.serialized:
        return thaw_data(envelope.payload, serializer)
    return envelope.payload
