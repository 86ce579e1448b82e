"""
Parameter Resolution
====================

Resolves each required operation parameter through three tiers:

    1. the value passed to the current call
    2. the profile's configured default
    3. the category's fallback list (when it has one)

and raises ``MissingParameterError`` when all three come up empty.
``None`` means "not given" at every tier. Tier 3 results are never written
back into the defaults, so fallback list changes take effect immediately.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from cryptutil.core.config import CryptoDefaults
from cryptutil.core.crypto.fallback import FALLBACK_LISTS, FallbackResolver
from cryptutil.core.errors import MissingParameterError

Params = Mapping[str, Any]

_log = logging.getLogger("cryptutil.params")


class ParameterResolver:
    """
    Cascading resolution of operation parameters for one profile.

    Args:
        defaults: The profile's defaults
        fallback: Resolver used for tier 3
    """

    __slots__ = ("_defaults", "_fallback", "_lists")

    def __init__(self, defaults: CryptoDefaults, fallback: FallbackResolver) -> None:
        self._defaults = defaults
        self._fallback = fallback
        self._lists: Dict[str, Tuple[str, ...]] = {}

    @property
    def defaults(self) -> CryptoDefaults:
        return self._defaults

    @property
    def fallback_resolver(self) -> FallbackResolver:
        return self._fallback

    # -- fallback lists --------------------------------------------------

    def fallback_list(self, category: str) -> Tuple[str, ...]:
        """The instance override for ``category``, else the compiled default."""
        if category not in FALLBACK_LISTS:
            raise KeyError(f"No fallback list for {category!r}")
        return self._lists.get(category, FALLBACK_LISTS[category])

    def set_fallback_list(self, category: str, candidates: Iterable[str]) -> None:
        if category not in FALLBACK_LISTS:
            raise KeyError(f"No fallback list for {category!r}")
        candidates = tuple(candidates)
        if not candidates:
            raise ValueError(f"Fallback list for {category} cannot be empty")
        self._lists[category] = candidates

    def clear_fallback_list(self, category: str) -> None:
        self._lists.pop(category, None)

    def fallback(self, category: str) -> str:
        """Tier 3 on its own: the first usable candidate for ``category``."""
        return self._fallback.resolve(category, self.fallback_list(category))

    # -- resolution ------------------------------------------------------

    def explicit(self, params: Params, name: str) -> Optional[Any]:
        """Tier 1 only."""
        return params.get(name)

    def configured(self, params: Params, name: str) -> Optional[Any]:
        """Tiers 1 and 2, without falling back."""
        value = params.get(name)
        if value is None:
            value = self._defaults.get_default(name)
        return value

    def resolve(self, params: Params, name: str) -> Any:
        """
        Resolve ``name`` through all three tiers.

        Raises:
            MissingParameterError: If no tier yields a value
            NoUsableCandidateError: If the fallback list is exhausted
        """
        value = self.configured(params, name)
        if value is not None:
            return value

        if name in FALLBACK_LISTS:
            value = self.fallback(name)
            _log.debug("Parameter %s resolved by fallback to %s", name, value)
            return value

        raise MissingParameterError(name)

    def resolve_all(self, params: Params, *names: str) -> Dict[str, Any]:
        """Return a copy of ``params`` with each of ``names`` resolved."""
        resolved = dict(params)
        for name in names:
            resolved[name] = self.resolve(params, name)
        return resolved

    def flag(self, params: Params, name: str, default_name: Optional[str] = None) -> bool:
        """
        Resolve a boolean switch.

        ``params[name]`` wins when given; otherwise the profile default
        ``default_name`` (defaulting to ``name``) is used, and unset means False.
        """
        value = params.get(name)
        if value is None:
            value = self._defaults.get_default(default_name or name)
        return bool(value)
