"""
Configuration
=============

Two layers of configuration:

``CryptoDefaults``
    The mutable per-profile defaults consulted by the parameter resolver
    (which cipher, which digest, the key, ...). One instance per logical
    user of the library; never shared implicitly between profiles.

``UtilConfig``
    Immutable, environment-aware settings used to build profiles:
    non-secret defaults, fallback behaviour and logging.

Security Features:
- Defaults are type-checked on assignment
- An unset default is ``None``; it never silently becomes "" or 0
- Secret-bearing settings (key, nonce, ...) are never read from the environment
- ``UtilConfig`` is immutable after initialization
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Final, Mapping, Optional, Tuple

# Parameter name -> accepted value types
DEFAULT_FIELDS: Final[Mapping[str, Tuple[type, ...]]] = {
    "cipher": (str,),
    "mode": (str,),
    "stream_mode": (str,),
    "block_mode": (str,),
    "authenticated_mode": (str,),
    "digest": (str,),
    "mac": (str,),
    "encoding": (str,),
    "printable_encoding": (str,),
    "alphanumerical_encoding": (str,),
    "uri_encoding": (str,),
    "serializer": (str,),
    "key": (str, bytes),
    "nonce": (str, bytes),
    "encode": (bool,),
    "use_literal_key": (bool,),
    "tamper_proof_unencrypted": (bool,),
}

# Security Constants
_SENSITIVE_KEYS: Final[frozenset[str]] = frozenset({
    "key", "nonce", "password", "secret", "token", "salt", "credential",
})

_BOOL_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


def _is_sensitive_key(key: str) -> bool:
    """Check if a configuration key names secret material."""
    return key.lower().rsplit(".", 1)[-1] in _SENSITIVE_KEYS


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in _BOOL_TRUE


class CryptoDefaults:
    """
    Per-profile default values for operation parameters.

    Every known parameter starts unset. Values are validated against
    ``DEFAULT_FIELDS`` on assignment.

    Usage:
        defaults = CryptoDefaults(cipher="AES")
        defaults.set_default("digest", "SHA-512")
        defaults.has_default("mac")      # False
        defaults.clear_default("cipher")
    """

    __slots__ = ("_values",)

    def __init__(self, **values: Any) -> None:
        self._values: Dict[str, Any] = {}
        for name, value in values.items():
            if value is not None:
                self.set_default(name, value)

    @staticmethod
    def _check_name(name: str) -> None:
        if name not in DEFAULT_FIELDS:
            raise KeyError(f"Unknown default parameter: {name!r}")

    def set_default(self, name: str, value: Any) -> None:
        """
        Set the default for ``name``.

        Raises:
            KeyError: If ``name`` is not a known parameter
            TypeError: If ``value`` has the wrong type
        """
        self._check_name(name)
        if value is None:
            self.clear_default(name)
            return
        accepted = DEFAULT_FIELDS[name]
        if not isinstance(value, accepted):
            names = " or ".join(t.__name__ for t in accepted)
            raise TypeError(f"Default {name!r} must be {names}, got {type(value).__name__}")
        self._values[name] = value

    def get_default(self, name: str) -> Any:
        """Return the default for ``name`` or None when unset."""
        self._check_name(name)
        return self._values.get(name)

    def has_default(self, name: str) -> bool:
        self._check_name(name)
        return name in self._values

    def clear_default(self, name: str) -> None:
        self._check_name(name)
        self._values.pop(name, None)

    def copy(self) -> CryptoDefaults:
        """Independent copy (profiles never share defaults)."""
        return CryptoDefaults(**self._values)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __repr__(self) -> str:
        """Safe representation without key material."""
        shown = {
            name: ("[REDACTED]" if _is_sensitive_key(name) else value)
            for name, value in self._values.items()
        }
        return f"CryptoDefaults({shown})"


@dataclass(frozen=True, slots=True)
class DefaultsConfig:
    """Immutable non-secret defaults applied to new profiles."""

    cipher: Optional[str] = None
    mode: Optional[str] = None
    authenticated_mode: Optional[str] = None
    digest: Optional[str] = None
    mac: Optional[str] = None
    encoding: Optional[str] = None
    serializer: Optional[str] = None
    encode: Optional[bool] = None
    use_literal_key: Optional[bool] = None
    tamper_proof_unencrypted: Optional[bool] = None

    def __post_init__(self) -> None:
        """Validate types by building a throwaway CryptoDefaults."""
        CryptoDefaults(**self.values())

    def values(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if getattr(self, name) is not None
        }


@dataclass(frozen=True, slots=True)
class FallbackConfig:
    """Immutable fallback settings."""

    disable_fallback: bool = False
    lists: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate fallback list overrides."""
        from cryptutil.core.crypto.fallback import FALLBACK_LISTS

        for category, candidates in self.lists.items():
            if category not in FALLBACK_LISTS:
                raise ValueError(f"Unknown fallback category: {category}")
            if not candidates:
                raise ValueError(f"Fallback list for {category} cannot be empty")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Immutable logging configuration."""

    level: str = "WARNING"
    enable_console: bool = True
    enable_json: bool = False
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate logging settings."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {self.level}")


class UtilConfig:
    """
    Immutable configuration loader with environment override support.

    Environment variables are prefixed with ``CRYPTUTIL_`` and use double
    underscores between section and field:

        CRYPTUTIL_DEFAULTS__CIPHER=Camellia
        CRYPTUTIL_DEFAULTS__TAMPER_PROOF_UNENCRYPTED=true
        CRYPTUTIL_FALLBACK__DISABLE_FALLBACK=true
        CRYPTUTIL_FALLBACK__DIGEST=SHA-512,SHA-256
        CRYPTUTIL_LOGGING__LEVEL=DEBUG

    Usage:
        config = UtilConfig.load()
        util = CryptUtil.from_config(config)
    """

    __slots__ = ("_defaults", "_fallback", "_logging", "_frozen", "_config_hash")

    def __init__(
        self,
        defaults: Optional[DefaultsConfig] = None,
        fallback: Optional[FallbackConfig] = None,
        logging: Optional[LoggingConfig] = None,
    ) -> None:
        """Initialize configuration. Use UtilConfig.load() for standard initialization."""
        object.__setattr__(self, "_frozen", False)
        object.__setattr__(self, "_defaults", defaults or DefaultsConfig())
        object.__setattr__(self, "_fallback", fallback or FallbackConfig())
        object.__setattr__(self, "_logging", logging or LoggingConfig())
        object.__setattr__(self, "_config_hash", self._compute_hash())
        object.__setattr__(self, "_frozen", True)

    def _compute_hash(self) -> str:
        """Compute a short fingerprint of the configuration."""
        config_str = f"{self._defaults}|{self._fallback}|{self._logging}"
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @property
    def defaults(self) -> DefaultsConfig:
        return self._defaults

    @property
    def fallback(self) -> FallbackConfig:
        return self._fallback

    @property
    def logging(self) -> LoggingConfig:
        return self._logging

    @property
    def config_hash(self) -> str:
        return self._config_hash

    def make_defaults(self) -> CryptoDefaults:
        """Fresh mutable defaults for a new profile."""
        return CryptoDefaults(**self._defaults.values())

    @classmethod
    def load(
        cls,
        env_prefix: str = "CRYPTUTIL",
        environ: Optional[Mapping[str, str]] = None,
    ) -> UtilConfig:
        """
        Load configuration with environment variable overrides.

        Args:
            env_prefix: Prefix for environment variables
            environ: Mapping to read instead of ``os.environ``

        Returns:
            Configured UtilConfig instance
        """
        from cryptutil.core.crypto.fallback import FALLBACK_LISTS

        overrides = cls._parse_env_overrides(env_prefix, os.environ if environ is None else environ)

        defaults_kwargs: dict[str, Any] = {}
        for name in DefaultsConfig.__dataclass_fields__:
            value = overrides.get(f"defaults.{name}")
            if value is None:
                continue
            if DEFAULT_FIELDS[name] == (bool,):
                defaults_kwargs[name] = _parse_bool(value)
            else:
                defaults_kwargs[name] = value

        fallback_kwargs: dict[str, Any] = {}
        if "fallback.disable_fallback" in overrides:
            fallback_kwargs["disable_fallback"] = _parse_bool(overrides["fallback.disable_fallback"])
        lists = {
            category: tuple(item.strip() for item in overrides[f"fallback.{category}"].split(",") if item.strip())
            for category in FALLBACK_LISTS
            if f"fallback.{category}" in overrides
        }
        if lists:
            fallback_kwargs["lists"] = lists

        logging_kwargs: dict[str, Any] = {}
        if "logging.level" in overrides:
            logging_kwargs["level"] = overrides["logging.level"].upper()
        if "logging.enable_console" in overrides:
            logging_kwargs["enable_console"] = _parse_bool(overrides["logging.enable_console"])
        if "logging.enable_json" in overrides:
            logging_kwargs["enable_json"] = _parse_bool(overrides["logging.enable_json"])
        if "logging.log_file" in overrides:
            logging_kwargs["log_file"] = Path(overrides["logging.log_file"])

        return cls(
            defaults=DefaultsConfig(**defaults_kwargs) if defaults_kwargs else None,
            fallback=FallbackConfig(**fallback_kwargs) if fallback_kwargs else None,
            logging=LoggingConfig(**logging_kwargs) if logging_kwargs else None,
        )

    @staticmethod
    def _parse_env_overrides(prefix: str, environ: Mapping[str, str]) -> dict[str, str]:
        """Parse environment variables with the given prefix."""
        overrides: dict[str, str] = {}
        prefix_upper = f"{prefix.upper()}_"

        for key, value in environ.items():
            if key.startswith(prefix_upper):
                # CRYPTUTIL_SECTION__KEY -> section.key
                config_key = key[len(prefix_upper):].lower().replace("__", ".")

                # SECURITY: secrets never come from the environment
                if _is_sensitive_key(config_key):
                    continue

                overrides[config_key] = value

        return overrides

    def __repr__(self) -> str:
        """Safe string representation without sensitive data."""
        return f"UtilConfig(hash={self._config_hash})"

    def __setattr__(self, name: str, value: Any) -> None:
        """Prevent modification after initialization."""
        if hasattr(self, "_frozen") and self._frozen:
            raise AttributeError("UtilConfig is immutable after initialization")
        super().__setattr__(name, value)
