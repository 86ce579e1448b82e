"""
Algorithm Registry
==================

Maps algorithm names to provider objects.

Names are matched case-insensitively and without ``-``/``_`` separators,
so ``"SHA-256"``, ``"sha256"`` and ``"Sha_256"`` address the same entry.
Registration validates the provider up front; lookups of unknown names
raise ``UnsupportedAlgorithmError`` instead of falling back.
"""

from __future__ import annotations

from typing import Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

from cryptutil.core.errors import UnsupportedAlgorithmError

T = TypeVar("T")


def normalize_name(name: str) -> str:
    """Canonical lookup key for an algorithm name."""
    return name.lower().replace("-", "").replace("_", "")


class Registry(Generic[T]):
    """
    Name → provider mapping for one kind of primitive.

    Usage:
        MODES = Registry[ModeFactory]("mode")

        @MODES.register("CBC")
        def _cbc(...): ...

        factory = MODES.lookup("cbc")
    """

    __slots__ = ("_kind", "_entries", "_canonical", "_validator")

    def __init__(self, kind: str, validator: Optional[Callable[[T], bool]] = None) -> None:
        self._kind = kind
        self._entries: Dict[str, T] = {}
        self._canonical: Dict[str, str] = {}
        self._validator = validator or callable

    @property
    def kind(self) -> str:
        return self._kind

    def add(self, name: str, provider: T, aliases: Tuple[str, ...] = ()) -> T:
        """
        Register ``provider`` under ``name`` (and any aliases).

        Raises:
            TypeError: If the provider fails validation
            ValueError: If a name is already taken
        """
        if not isinstance(name, str) or not name:
            raise TypeError(f"{self._kind} name must be a non-empty string")
        if not self._validator(provider):
            raise TypeError(f"Invalid {self._kind} provider for {name!r}: {provider!r}")

        for alias in (name, *aliases):
            key = normalize_name(alias)
            if key in self._entries:
                raise ValueError(f"{self._kind} {alias!r} is already registered")
            self._entries[key] = provider
            self._canonical[key] = name
        return provider

    def register(self, name: str, aliases: Tuple[str, ...] = ()) -> Callable[[T], T]:
        """Decorator form of ``add``."""
        def decorator(provider: T) -> T:
            return self.add(name, provider, aliases)
        return decorator

    def lookup(self, name: str) -> T:
        """
        Return the provider registered for ``name``.

        Raises:
            UnsupportedAlgorithmError: If nothing is registered under ``name``
        """
        if not isinstance(name, str) or not name:
            raise UnsupportedAlgorithmError(self._kind, name)
        try:
            return self._entries[normalize_name(name)]
        except KeyError:
            raise UnsupportedAlgorithmError(self._kind, name) from None

    def canonical_name(self, name: str) -> str:
        """The name an entry was registered under (not an alias)."""
        self.lookup(name)
        return self._canonical[normalize_name(name)]

    def names(self) -> Tuple[str, ...]:
        """Registered canonical names, in registration order."""
        return tuple(dict.fromkeys(self._canonical.values()))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize_name(name) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def __len__(self) -> int:
        return len(self.names())

    def __repr__(self) -> str:
        return f"Registry({self._kind!r}, {len(self)} entries)"
