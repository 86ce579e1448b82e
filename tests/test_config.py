"""
Tests for cryptutil/core/config.py - Defaults and Configuration

Tests cover:
- CryptoDefaults setters, type checks and redaction
- UtilConfig environment overrides
- Secret skipping
- Immutability
- Building profiles from configuration
"""

from pathlib import Path

import pytest

from cryptutil import CryptUtil, UtilConfig
from cryptutil.core.config import (
    CryptoDefaults,
    DefaultsConfig,
    FallbackConfig,
    LoggingConfig,
)
from cryptutil.core.errors import NoUsableCandidateError


# ===========================================================================
# CryptoDefaults Tests
# ===========================================================================

class TestCryptoDefaults:
    @pytest.mark.unit
    def test_starts_unset(self):
        defaults = CryptoDefaults()
        assert defaults.get_default("cipher") is None
        assert not defaults.has_default("cipher")
        assert defaults.as_dict() == {}

    @pytest.mark.unit
    def test_set_get_clear(self):
        defaults = CryptoDefaults(cipher="AES")
        assert defaults.get_default("cipher") == "AES"
        defaults.clear_default("cipher")
        assert not defaults.has_default("cipher")

    @pytest.mark.unit
    def test_none_clears(self):
        defaults = CryptoDefaults(digest="SHA-512")
        defaults.set_default("digest", None)
        assert not defaults.has_default("digest")

    @pytest.mark.unit
    def test_unknown_name(self):
        with pytest.raises(KeyError):
            CryptoDefaults().set_default("colour", "blue")
        with pytest.raises(KeyError):
            CryptoDefaults().get_default("colour")

    @pytest.mark.unit
    @pytest.mark.parametrize("name,value", [
        ("cipher", 5),
        ("encode", "yes"),
        ("key", 1234),
        ("use_literal_key", 1),
    ])
    def test_type_checked(self, name, value):
        with pytest.raises(TypeError):
            CryptoDefaults().set_default(name, value)

    @pytest.mark.unit
    def test_key_accepts_text_and_bytes(self):
        defaults = CryptoDefaults(key="text")
        defaults.set_default("key", b"bytes")
        assert defaults.get_default("key") == b"bytes"

    @pytest.mark.security
    def test_repr_redacts_secrets(self):
        text = repr(CryptoDefaults(key=b"topsecret", nonce="n0nce", cipher="AES"))
        assert "topsecret" not in text
        assert "n0nce" not in text
        assert "AES" in text

    @pytest.mark.unit
    def test_copy_is_independent(self):
        original = CryptoDefaults(cipher="AES")
        clone = original.copy()
        clone.set_default("cipher", "SM4")
        assert original.get_default("cipher") == "AES"

    @pytest.mark.unit
    def test_profiles_do_not_share_defaults(self, probe_cache):
        first = CryptUtil(probe_cache=probe_cache)
        second = CryptUtil(probe_cache=probe_cache)
        first.set_default("digest", "MD5")
        assert not second.has_default("digest")


# ===========================================================================
# Section Validation Tests
# ===========================================================================

class TestSections:
    @pytest.mark.unit
    def test_defaults_config_validates_types(self):
        with pytest.raises(TypeError):
            DefaultsConfig(encode="true")

    @pytest.mark.unit
    def test_defaults_config_values(self):
        assert DefaultsConfig(cipher="AES", encode=False).values() == {"cipher": "AES", "encode": False}

    @pytest.mark.unit
    def test_fallback_config_rejects_unknown_category(self):
        with pytest.raises(ValueError):
            FallbackConfig(lists={"key": ("x",)})

    @pytest.mark.unit
    def test_fallback_config_rejects_empty_list(self):
        with pytest.raises(ValueError):
            FallbackConfig(lists={"digest": ()})

    @pytest.mark.unit
    def test_logging_config_rejects_bad_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")


# ===========================================================================
# Environment Override Tests
# ===========================================================================

class TestEnvironment:
    @pytest.mark.unit
    def test_empty_environment_gives_defaults(self):
        config = UtilConfig.load(environ={})
        assert config.defaults == DefaultsConfig()
        assert config.fallback.disable_fallback is False
        assert config.logging.level == "WARNING"

    @pytest.mark.unit
    def test_overrides(self):
        config = UtilConfig.load(environ={
            "CRYPTUTIL_DEFAULTS__CIPHER": "Camellia",
            "CRYPTUTIL_DEFAULTS__TAMPER_PROOF_UNENCRYPTED": "true",
            "CRYPTUTIL_FALLBACK__DISABLE_FALLBACK": "yes",
            "CRYPTUTIL_FALLBACK__DIGEST": "SHA-512, SHA-256",
            "CRYPTUTIL_LOGGING__LEVEL": "debug",
            "CRYPTUTIL_LOGGING__LOG_FILE": "/tmp/cryptutil.log",
            "OTHER_DEFAULTS__CIPHER": "SM4",
        })
        assert config.defaults.cipher == "Camellia"
        assert config.defaults.tamper_proof_unencrypted is True
        assert config.fallback.disable_fallback is True
        assert config.fallback.lists == {"digest": ("SHA-512", "SHA-256")}
        assert config.logging.level == "DEBUG"
        assert config.logging.log_file == Path("/tmp/cryptutil.log")

    @pytest.mark.unit
    def test_custom_prefix(self):
        config = UtilConfig.load(env_prefix="APP", environ={"APP_DEFAULTS__DIGEST": "SHA-1"})
        assert config.defaults.digest == "SHA-1"

    @pytest.mark.unit
    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("CRYPTUTIL_DEFAULTS__MAC", "CMAC")
        assert UtilConfig.load().defaults.mac == "CMAC"

    @pytest.mark.security
    def test_secrets_never_read_from_environment(self):
        env = {
            "CRYPTUTIL_DEFAULTS__KEY": "leaked",
            "CRYPTUTIL_DEFAULTS__NONCE": "leaked",
        }
        overrides = UtilConfig._parse_env_overrides("CRYPTUTIL", env)
        assert overrides == {}
        defaults = UtilConfig.load(environ=env).make_defaults()
        assert not defaults.has_default("key")


# ===========================================================================
# UtilConfig Tests
# ===========================================================================

class TestUtilConfig:
    @pytest.mark.unit
    def test_immutable(self):
        config = UtilConfig()
        with pytest.raises(AttributeError):
            config.defaults = DefaultsConfig(cipher="AES")

    @pytest.mark.unit
    def test_config_hash(self):
        assert UtilConfig().config_hash == UtilConfig().config_hash
        assert UtilConfig().config_hash != UtilConfig(DefaultsConfig(cipher="SM4")).config_hash
        assert repr(UtilConfig()).startswith("UtilConfig(hash=")

    @pytest.mark.unit
    def test_make_defaults_is_fresh(self):
        config = UtilConfig(DefaultsConfig(cipher="AES"))
        first = config.make_defaults()
        first.set_default("cipher", "SM4")
        assert config.make_defaults().get_default("cipher") == "AES"

    @pytest.mark.unit
    def test_from_config(self, probe_cache):
        config = UtilConfig(
            DefaultsConfig(encode=True),
            FallbackConfig(lists={"digest": ("SHA-512",)}),
        )
        util = CryptUtil.from_config(config, probe_cache=probe_cache)
        assert util.fallback("digest") == "SHA-512"
        assert util.fallback_list("digest") == ("SHA-512",)
        assert isinstance(util.digest_string(b"x"), str)

    @pytest.mark.unit
    def test_from_config_disable_fallback(self, probe_cache):
        config = UtilConfig(fallback=FallbackConfig(
            disable_fallback=True, lists={"digest": ("NoSuchDigest", "SHA-256")},
        ))
        util = CryptUtil.from_config(config, probe_cache=probe_cache)
        assert util.disable_fallback is True
        with pytest.raises(NoUsableCandidateError):
            util.fallback("digest")
        util.disable_fallback = False
        assert util.fallback("digest") == "SHA-256"
