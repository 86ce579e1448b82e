"""
Tests for digests and MACs - digests.py, dispatch.py

Tests cover:
- Digest selection and variable-width digests
- HMAC with literal and derived keys
- CMAC with cipher-derived keys
- Constant-time verification helpers
"""

import hashlib
import hmac

import pytest
from cryptography.hazmat.primitives import cmac

from cryptutil.core.crypto.ciphers import get_cipher
from cryptutil.core.crypto.digests import constant_time_compare, probe_mac
from cryptutil.core.crypto.keys import stretch_key
from cryptutil.core.errors import (
    PrimitiveUnavailableError,
    TamperDetectedError,
    UnsupportedAlgorithmError,
)

from conftest import TEST_KEY

MESSAGE = b"The quick brown fox jumps over the lazy dog"


# ===========================================================================
# Digest Tests
# ===========================================================================

class TestDigests:
    @pytest.mark.unit
    def test_default_digest_is_sha256(self, util):
        assert util.digest_string(MESSAGE) == hashlib.sha256(MESSAGE).digest()

    @pytest.mark.unit
    @pytest.mark.parametrize("name,reference", [
        ("SHA-1", "sha1"),
        ("SHA-512", "sha512"),
        ("SHA3-256", "sha3_256"),
        ("BLAKE2b", "blake2b"),
        ("MD5", "md5"),
    ])
    def test_named_digest(self, util, name, reference):
        assert util.digest_string(MESSAGE, digest=name) == hashlib.new(reference, MESSAGE).digest()

    @pytest.mark.unit
    def test_digest_args(self, util):
        digest = util.digest_string(MESSAGE, digest="SHAKE256", digest_args={"digest_size": 16})
        assert digest == hashlib.shake_256(MESSAGE).digest(16)

    @pytest.mark.unit
    def test_encoded_digest(self, util):
        assert util.digest_string(MESSAGE, encode=True) == hashlib.sha256(MESSAGE).hexdigest()

    @pytest.mark.unit
    def test_encoding_implies_encode(self, util):
        digest = util.digest_string(MESSAGE, encoding="base32")
        assert isinstance(digest, str)
        assert util.decode_string_base32(digest) == hashlib.sha256(MESSAGE).digest()

    @pytest.mark.unit
    def test_encode_default(self, util):
        util.set_default("encode", True)
        assert isinstance(util.digest_string(MESSAGE), str)

    @pytest.mark.unit
    def test_digest_object_is_incremental(self, util):
        digest = util.digest_object()
        digest.update(MESSAGE[:10])
        digest.update(MESSAGE[10:])
        assert digest.finalize() == hashlib.sha256(MESSAGE).digest()

    @pytest.mark.unit
    def test_unknown_digest(self, util):
        with pytest.raises(UnsupportedAlgorithmError):
            util.digest_string(MESSAGE, digest="SHA-999")


# ===========================================================================
# Digest Verification Tests
# ===========================================================================

class TestVerifyHash:
    @pytest.mark.unit
    def test_matching_digest(self, util):
        assert util.verify_hash(MESSAGE, hashlib.sha256(MESSAGE).digest()) is True

    @pytest.mark.unit
    def test_matching_encoded_digest(self, util):
        assert util.verify_digest(MESSAGE, hashlib.sha256(MESSAGE).hexdigest(), encode=True) is True

    @pytest.mark.security
    def test_mismatch_not_fatal_by_default(self, util):
        assert util.verify_hash(MESSAGE, b"\x00" * 32) is False

    @pytest.mark.security
    def test_mismatch_fatal(self, util):
        with pytest.raises(TamperDetectedError):
            util.verify_hash(MESSAGE, b"\x00" * 32, fatal=True)


# ===========================================================================
# MAC Tests
# ===========================================================================

class TestMacs:
    @pytest.mark.unit
    def test_default_is_hmac_sha256_with_literal_key(self, util):
        expected = hmac.new(TEST_KEY, MESSAGE, hashlib.sha256).digest()
        assert util.mac_digest_string(MESSAGE) == expected

    @pytest.mark.unit
    def test_hmac_digest_selection(self, util):
        expected = hmac.new(TEST_KEY, MESSAGE, hashlib.sha512).digest()
        assert util.mac_digest_string(MESSAGE, digest="SHA-512") == expected

    @pytest.mark.unit
    def test_hmac_forced_key_derivation(self, util):
        key = hashlib.shake_256(TEST_KEY).digest(64)
        expected = hmac.new(key, MESSAGE, hashlib.sha256).digest()
        assert util.mac_digest_string(MESSAGE, literal_key=False) == expected

    @pytest.mark.unit
    def test_cmac_uses_cipher_derived_key(self, util):
        if not probe_mac("CMAC"):
            pytest.skip("CMAC unavailable")
        mac = cmac.CMAC(get_cipher("AES").algorithm(stretch_key(TEST_KEY, 32)))
        mac.update(MESSAGE)
        assert util.mac_digest_string(MESSAGE, mac="CMAC") == mac.finalize()

    @pytest.mark.unit
    def test_verify_mac(self, util):
        tag = util.mac_digest_string(MESSAGE)
        assert util.verify_mac(MESSAGE, tag) is True
        assert util.verify_mac(MESSAGE + b"!", tag) is False

    @pytest.mark.security
    def test_verify_mac_fatal(self, util):
        tag = util.mac_digest_string(MESSAGE)
        with pytest.raises(TamperDetectedError):
            util.verify_mac(MESSAGE, tag, key=b"other key", fatal=True)

    @pytest.mark.unit
    def test_unknown_mac(self, util):
        with pytest.raises(UnsupportedAlgorithmError):
            util.mac_object(mac="Poly1305-ish")

    @pytest.mark.unit
    def test_probe_mac(self):
        assert probe_mac("HMAC") is True
        with pytest.raises(PrimitiveUnavailableError):
            probe_mac("UMAC")


# ===========================================================================
# Constant-Time Compare Tests
# ===========================================================================

class TestConstantTimeCompare:
    @pytest.mark.unit
    def test_text_and_bytes_compare_equal(self):
        assert constant_time_compare("abcd", b"abcd")

    @pytest.mark.unit
    def test_different_lengths(self):
        assert not constant_time_compare(b"abc", b"abcd")
