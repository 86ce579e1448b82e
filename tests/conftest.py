"""
Shared fixtures for the cryptutil test suite.
"""

import pytest

from cryptutil import CryptUtil
from cryptutil.core.crypto.fallback import ProbeCache

TEST_KEY = b"correct horse battery staple"


@pytest.fixture
def probe_cache():
    """Fresh probe cache so tests never see each other's probe outcomes."""
    return ProbeCache()


@pytest.fixture
def util(probe_cache):
    return CryptUtil(key=TEST_KEY, probe_cache=probe_cache)


@pytest.fixture
def gcm_util(probe_cache):
    """Profile pinned to AES-GCM so results do not depend on pycryptodome."""
    return CryptUtil(key=TEST_KEY, authenticated_mode="GCM", probe_cache=probe_cache)
