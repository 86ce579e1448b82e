"""
Tests for cryptutil/core/crypto/fallback.py - Fallback Resolution

Tests cover:
- First usable candidate wins
- Probe outcome caching
- Single-candidate mode (disable_fallback)
- Absence vs. real load failures
- Compiled-in default lists against the installed primitives
"""

import importlib.util
from unittest import mock

import pytest

from cryptutil.core.crypto.dispatch import default_probes
from cryptutil.core.crypto.fallback import (
    FALLBACK_LISTS,
    FallbackResolver,
    ProbeCache,
    category_type,
    get_probe_cache,
)
from cryptutil.core.errors import (
    NoUsableCandidateError,
    PrimitiveLoadError,
    PrimitiveUnavailableError,
    UnsupportedAlgorithmError,
)


def _probe_accepting(*usable):
    def probe(candidate):
        if candidate not in usable:
            raise PrimitiveUnavailableError(f"{candidate} not installed")
        return True
    return mock.Mock(side_effect=probe)


# ===========================================================================
# Resolution Tests
# ===========================================================================

class TestResolve:
    @pytest.mark.unit
    def test_first_usable_candidate_wins(self, probe_cache):
        resolver = FallbackResolver({"cipher": _probe_accepting("B", "C")}, probe_cache)
        assert resolver.resolve("cipher", ["A", "B", "C"]) == "B"

    @pytest.mark.unit
    def test_resolution_is_deterministic(self, probe_cache):
        resolver = FallbackResolver({"cipher": _probe_accepting("B", "C")}, probe_cache)
        results = {resolver.resolve("cipher", ["A", "B", "C"]) for _ in range(5)}
        assert results == {"B"}

    @pytest.mark.unit
    def test_exhausted_list_raises(self, probe_cache):
        resolver = FallbackResolver({"cipher": _probe_accepting()}, probe_cache)
        with pytest.raises(NoUsableCandidateError) as exc_info:
            resolver.resolve("cipher", ["A", "B"])
        assert exc_info.value.category == "cipher"
        assert exc_info.value.candidates == ("A", "B")

    @pytest.mark.unit
    def test_falsy_probe_result_is_unusable(self, probe_cache):
        resolver = FallbackResolver({"digest": lambda name: name == "ok"}, probe_cache)
        assert resolver.resolve("digest", ["bad", "ok"]) == "ok"
        assert probe_cache.get("digest", "bad") is False

    @pytest.mark.unit
    def test_unregistered_candidate_is_unusable(self, probe_cache):
        resolver = FallbackResolver(default_probes(), probe_cache)
        assert resolver.resolve("digest", ["NoSuchDigest", "SHA-256"]) == "SHA-256"

    @pytest.mark.unit
    def test_category_without_probe_raises(self, probe_cache):
        resolver = FallbackResolver({}, probe_cache)
        with pytest.raises(UnsupportedAlgorithmError):
            resolver.resolve("cipher", ["AES"])


# ===========================================================================
# Probe Cache Tests
# ===========================================================================

class TestProbeCaching:
    @pytest.mark.unit
    def test_each_candidate_probed_once(self, probe_cache):
        probe = _probe_accepting("B")
        resolver = FallbackResolver({"cipher": probe}, probe_cache)

        resolver.resolve("cipher", ["A", "B"])
        resolver.resolve("cipher", ["A", "B"])

        assert [c.args[0] for c in probe.call_args_list] == ["A", "B"]
        assert probe_cache.get("cipher", "A") is False
        assert probe_cache.get("cipher", "B") is True

    @pytest.mark.unit
    def test_cache_shared_between_resolvers(self, probe_cache):
        probe = _probe_accepting("A")
        FallbackResolver({"cipher": probe}, probe_cache).resolve("cipher", ["A"])
        FallbackResolver({"cipher": probe}, probe_cache).resolve("cipher", ["A"])
        assert probe.call_count == 1

    @pytest.mark.unit
    def test_cache_keyed_by_category(self, probe_cache):
        probe = _probe_accepting("CBC")
        resolver = FallbackResolver({"mode": probe}, probe_cache)
        resolver.resolve("mode", ["CBC"])
        resolver.resolve("block_mode", ["CBC"])
        assert probe.call_count == 2
        assert ("block_mode", "CBC") in probe_cache

    @pytest.mark.unit
    def test_cache_write_is_idempotent(self):
        cache = ProbeCache()
        cache.set("cipher", "AES", True)
        cache.set("cipher", "AES", False)
        assert cache.get("cipher", "AES") is True
        assert len(cache) == 1

    @pytest.mark.unit
    def test_clear(self):
        cache = ProbeCache()
        cache.set("cipher", "AES", True)
        cache.clear()
        assert cache.get("cipher", "AES") is None

    @pytest.mark.unit
    def test_process_wide_cache_is_singleton(self):
        assert get_probe_cache() is get_probe_cache()

    @pytest.mark.unit
    def test_resolver_uses_process_cache_by_default(self):
        assert FallbackResolver({}).cache is get_probe_cache()


# ===========================================================================
# Single-Candidate Mode Tests
# ===========================================================================

class TestDisableFallback:
    @pytest.mark.unit
    def test_only_first_candidate_tried(self, probe_cache):
        probe = _probe_accepting("B")
        resolver = FallbackResolver({"cipher": probe}, probe_cache, disable_fallback=True)

        with pytest.raises(NoUsableCandidateError) as exc_info:
            resolver.resolve("cipher", ["A", "B"])

        assert exc_info.value.candidates == ("A",)
        assert probe.call_count == 1

    @pytest.mark.unit
    def test_usable_first_candidate_still_resolves(self, probe_cache):
        resolver = FallbackResolver({"cipher": _probe_accepting("A")}, probe_cache, disable_fallback=True)
        assert resolver.resolve("cipher", ["A", "B"]) == "A"


# ===========================================================================
# Load Failure Tests
# ===========================================================================

class TestLoadFailures:
    @pytest.mark.security
    def test_unexpected_probe_error_is_fatal(self, probe_cache):
        def broken(candidate):
            raise RuntimeError("corrupted install")

        resolver = FallbackResolver({"cipher": broken}, probe_cache)
        with pytest.raises(PrimitiveLoadError) as exc_info:
            resolver.resolve("cipher", ["A", "B"])

        assert exc_info.value.candidate == "A"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.unit
    def test_load_failure_not_cached(self, probe_cache):
        resolver = FallbackResolver({"cipher": mock.Mock(side_effect=OSError("boom"))}, probe_cache)
        with pytest.raises(PrimitiveLoadError):
            resolver.resolve("cipher", ["A"])
        assert ("cipher", "A") not in probe_cache


# ===========================================================================
# Default List Tests
# ===========================================================================

class TestDefaultLists:
    @pytest.mark.unit
    @pytest.mark.parametrize("category,family", [
        ("mode", "mode"),
        ("stream_mode", "mode"),
        ("authenticated_mode", "mode"),
        ("encoding", "encoding"),
        ("uri_encoding", "encoding"),
        ("cipher", "cipher"),
        ("digest", "digest"),
        ("mac", "mac"),
    ])
    def test_category_type(self, category, family):
        assert category_type(category) == family

    @pytest.mark.unit
    def test_every_list_is_non_empty(self):
        assert all(FALLBACK_LISTS.values())

    @pytest.mark.unit
    @pytest.mark.parametrize("category,expected", [
        ("mode", "CFB"),
        ("stream_mode", "CFB"),
        ("block_mode", "CBC"),
        ("cipher", "AES"),
        ("digest", "SHA-256"),
        ("mac", "HMAC"),
        ("encoding", "hex"),
        ("printable_encoding", "base64"),
        ("alphanumerical_encoding", "base32"),
        ("uri_encoding", "uri_base64"),
    ])
    def test_default_resolution(self, probe_cache, category, expected):
        resolver = FallbackResolver(default_probes(), probe_cache)
        assert resolver.resolve(category, FALLBACK_LISTS[category]) == expected

    @pytest.mark.unit
    def test_authenticated_mode_prefers_eax_when_installed(self, probe_cache):
        resolver = FallbackResolver(default_probes(), probe_cache)
        expected = "EAX" if importlib.util.find_spec("Crypto") is not None else "GCM"
        assert resolver.resolve("authenticated_mode", FALLBACK_LISTS["authenticated_mode"]) == expected
