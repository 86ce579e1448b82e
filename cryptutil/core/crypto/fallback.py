"""
Fallback Resolution
===================

Picks the first usable algorithm from an ordered candidate list.

Resolution Rules:
    - Candidates are tried left to right; the first usable one wins
    - Each (category, candidate) pair is probed at most once per process
    - "Not installed" outcomes are cached as unusable and the search continues
    - Any other probe failure is fatal (``PrimitiveLoadError``) and is not cached
    - With ``disable_fallback`` only the first candidate is ever tried

The order of each list encodes preference, so resolution is deterministic
for a fixed list and a fixed set of installed primitives.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Final, Iterable, Mapping, Optional, Tuple

from cryptutil.core.errors import (
    CryptUtilError,
    NoUsableCandidateError,
    PrimitiveLoadError,
    PrimitiveUnavailableError,
    UnsupportedAlgorithmError,
)

# Compiled-in preference lists, one per resolvable category
FALLBACK_LISTS: Final[Mapping[str, Tuple[str, ...]]] = {
    "mode": ("CFB", "CBC", "CTR", "OFB"),
    "stream_mode": ("CFB", "CTR", "OFB"),
    "block_mode": ("CBC",),
    "authenticated_mode": ("EAX", "GCM", "CCM"),  # OCB is supported but not preferred
    "cipher": ("AES", "Camellia", "SM4", "Blowfish", "TripleDES"),
    "digest": ("SHA-256", "SHA-1", "SHA-512", "SHA3-256", "BLAKE2b", "MD5"),
    "mac": ("HMAC", "CMAC"),
    "encoding": ("hex",),
    "printable_encoding": ("base64", "hex"),
    "alphanumerical_encoding": ("base32", "hex"),
    "uri_encoding": ("uri_base64", "base32", "hex"),
}

Probe = Callable[[str], object]

_log = logging.getLogger("cryptutil.fallback")


def category_type(category: str) -> str:
    """
    Probe family for a fallback category.

    ``stream_mode`` and ``authenticated_mode`` are probed like ``mode``,
    every ``*_encoding`` like ``encoding``.
    """
    for family in ("encoding", "mode"):
        if family in category:
            return family
    return category


class ProbeCache:
    """
    Process-wide record of probe outcomes keyed by (category, candidate).

    Writes are idempotent: two threads probing the same candidate store
    the same boolean, so the lock only protects the dict itself.
    """

    __slots__ = ("_results", "_lock")

    def __init__(self) -> None:
        self._results: Dict[Tuple[str, str], bool] = {}
        self._lock = threading.Lock()

    def get(self, category: str, candidate: str) -> Optional[bool]:
        with self._lock:
            return self._results.get((category, candidate))

    def set(self, category: str, candidate: str, usable: bool) -> None:
        with self._lock:
            self._results.setdefault((category, candidate), usable)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._results

    def __len__(self) -> int:
        with self._lock:
            return len(self._results)

    def clear(self) -> None:
        """Forget all outcomes. Use only for testing."""
        with self._lock:
            self._results.clear()


_probe_cache: Optional[ProbeCache] = None
_probe_cache_lock = threading.Lock()


def get_probe_cache() -> ProbeCache:
    """Return the process-wide probe cache, creating it on first use."""
    global _probe_cache
    if _probe_cache is None:
        with _probe_cache_lock:
            if _probe_cache is None:
                _probe_cache = ProbeCache()
    return _probe_cache


class FallbackResolver:
    """
    Finds the first usable candidate of a fallback list.

    Args:
        probes: Probe per category type (``cipher``, ``mode``, ``digest``,
            ``mac``, ``encoding``). A probe returns normally (truthy) when
            the primitive is usable and raises ``PrimitiveUnavailableError``
            when it is not installed.
        cache: Probe cache (defaults to the process-wide one)
        disable_fallback: Only ever try the first candidate
    """

    __slots__ = ("_probes", "_cache", "disable_fallback")

    def __init__(
        self,
        probes: Mapping[str, Probe],
        cache: Optional[ProbeCache] = None,
        disable_fallback: bool = False,
    ) -> None:
        self._probes = dict(probes)
        self._cache = cache if cache is not None else get_probe_cache()
        self.disable_fallback = disable_fallback

    @property
    def cache(self) -> ProbeCache:
        return self._cache

    def resolve(self, category: str, candidates: Iterable[str]) -> str:
        """
        Return the first usable candidate for ``category``.

        Raises:
            NoUsableCandidateError: If every tried candidate is unusable
            PrimitiveLoadError: If a probe fails for a reason other than absence
        """
        candidates = tuple(candidates)
        tried = candidates[:1] if self.disable_fallback else candidates

        for candidate in tried:
            usable = self._cache.get(category, candidate)
            if usable is None:
                usable = self._probe(category, candidate)
                self._cache.set(category, candidate, usable)
            if usable:
                return candidate

        raise NoUsableCandidateError(category, tried)

    def _probe(self, category: str, candidate: str) -> bool:
        family = category_type(category)
        probe = self._probes.get(family)
        if probe is None:
            raise UnsupportedAlgorithmError(
                "fallback category", category,
                f"No probe registered for {family!r} fallbacks",
            )

        try:
            usable = bool(probe(candidate))
        except (PrimitiveUnavailableError, UnsupportedAlgorithmError) as e:
            _log.debug("%s candidate %s unavailable: %s", category, candidate, e)
            return False
        except CryptUtilError:
            raise
        except Exception as e:
            raise PrimitiveLoadError(category, candidate, e) from e

        _log.debug("%s candidate %s usable=%s", category, candidate, usable)
        return usable
