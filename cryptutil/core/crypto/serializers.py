"""
Structured Value Serializers
============================

Turns structured (non-byte) values into bytes and back for the data
envelope's ``serialized`` payloads.

    json    default; portable, handles str/int/float/bool/None/list/dict
            (tuples come back as lists)
    pickle  any picklable Python object

WARNING:
    ``pickle`` executes code while loading. Only thaw pickled payloads that
    came out of a verified tamper-evident envelope.
"""

from __future__ import annotations

import json
import pickle
from dataclasses import dataclass
from typing import Any, Callable, Final

from cryptutil.core.crypto.registry import Registry

DEFAULT_SERIALIZER: Final[str] = "json"
PICKLE_PROTOCOL: Final[int] = 4


@dataclass(frozen=True, slots=True)
class Serializer:
    """A freeze/thaw pair."""

    name: str
    freeze: Callable[[Any], bytes]
    thaw: Callable[[bytes], Any]


SERIALIZERS: Final[Registry[Serializer]] = Registry(
    "serializer", validator=lambda s: isinstance(s, Serializer)
)


def _freeze_json(value: Any) -> bytes:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), sort_keys=True).encode("utf-8")


def _thaw_json(data: bytes) -> Any:
    return json.loads(data.decode("utf-8"))


SERIALIZERS.add("json", Serializer("json", _freeze_json, _thaw_json))
SERIALIZERS.add("pickle", Serializer(
    "pickle",
    lambda value: pickle.dumps(value, protocol=PICKLE_PROTOCOL),
    pickle.loads,
))


def get_serializer(name: str) -> Serializer:
    """Look up a serializer by name (raises UnsupportedAlgorithmError)."""
    return SERIALIZERS.lookup(name)
