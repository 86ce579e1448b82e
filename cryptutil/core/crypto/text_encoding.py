"""
Text Encodings
==============

Byte ↔ text codecs selectable by name.

Concrete encodings:
    hex             lowercase hexadecimal
    base64          standard alphabet, unwrapped
    base64_wrapped  standard alphabet, 76-column lines (encode only)
    uri_base64      URL-safe alphabet without ``=`` padding
    base32          RFC 3548 alphabet (decoding is case-insensitive)
    uri_escape      percent-escaping of everything outside RFC 3986 unreserved

Symbolic encodings (``uri``, ``alphanumerical``, ``printable``) are not
codecs; they name a parameter whose value picks one of the above.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Callable, Final, Optional
from urllib.parse import quote_from_bytes, unquote_to_bytes

from cryptutil.core.crypto.registry import Registry
from cryptutil.core.errors import UnsupportedAlgorithmError

# Symbolic encoding -> parameter that resolves it
SYMBOLIC_ENCODINGS: Final[dict[str, str]] = {
    "uri": "uri_encoding",
    "alphanumerical": "alphanumerical_encoding",
    "printable": "printable_encoding",
}


@dataclass(frozen=True, slots=True)
class TextCodec:
    """An encoder and (optionally) its decoder."""

    name: str
    encode: Callable[[bytes], str]
    decode: Optional[Callable[[str], bytes]] = None


ENCODINGS: Final[Registry[TextCodec]] = Registry(
    "encoding", validator=lambda codec: isinstance(codec, TextCodec)
)


def _decode_hex(text: str) -> bytes:
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise ValueError(f"Invalid hex string: {e}") from e


def _decode_base64(text: str) -> bytes:
    try:
        return base64.b64decode(text, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 string: {e}") from e


def _encode_uri_base64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _decode_uri_base64(text: str) -> bytes:
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.urlsafe_b64decode(padded)
    except binascii.Error as e:
        raise ValueError(f"Invalid URI-safe base64 string: {e}") from e


def _decode_base32(text: str) -> bytes:
    try:
        return base64.b32decode(text.upper())
    except binascii.Error as e:
        raise ValueError(f"Invalid base32 string: {e}") from e


ENCODINGS.add("hex", TextCodec("hex", bytes.hex, _decode_hex))
ENCODINGS.add("base64", TextCodec(
    "base64", lambda data: base64.b64encode(data).decode("ascii"), _decode_base64,
))
ENCODINGS.add("base64_wrapped", TextCodec(
    "base64_wrapped", lambda data: base64.encodebytes(data).decode("ascii"),
))
ENCODINGS.add("uri_base64", TextCodec("uri_base64", _encode_uri_base64, _decode_uri_base64))
ENCODINGS.add("base32", TextCodec(
    "base32", lambda data: base64.b32encode(data).decode("ascii"), _decode_base32,
))
ENCODINGS.add("uri_escape", TextCodec(
    "uri_escape", lambda data: quote_from_bytes(data, safe="-_.~"), unquote_to_bytes,
))


def get_codec(name: str) -> TextCodec:
    """Look up a concrete encoding (raises UnsupportedAlgorithmError)."""
    return ENCODINGS.lookup(name)


def encode(data: bytes, name: str) -> str:
    """Encode ``data`` with the concrete encoding ``name``."""
    return get_codec(name).encode(bytes(data))


def decode(text: str, name: str) -> bytes:
    """
    Decode ``text`` with the concrete encoding ``name``.

    Raises:
        UnsupportedAlgorithmError: If the encoding is unknown or encode-only
        ValueError: If ``text`` is not valid for the encoding
    """
    codec = get_codec(name)
    if codec.decode is None:
        raise UnsupportedAlgorithmError(
            "encoding", name, f"Encoding {name} can only be used for encoding"
        )
    if isinstance(text, (bytes, bytearray)):
        text = bytes(text).decode("ascii")
    return codec.decode(text)


def probe_encoding(name: str) -> bool:
    """Fallback probe for every ``*encoding`` category (all codecs are stdlib)."""
    get_codec(name)
    return True
