"""
Pytest configuration and fixtures for LanChat tests.

Provides common fixtures and test utilities for unit and integration tests.
"""

import shutil
import tempfile
from pathlib import Path
from typing import Generator, Tuple

import pytest

from lanchat.ciphers import EncryptionMode
from lanchat.keys import KeyRing
from lanchat.session import ChatSession
from lanchat.settings import CipherSettings, SettingsStore


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test data.

    Yields:
        Path: Temporary directory path

    Cleanup:
        Automatically removes directory after test
    """
    tmp = Path(tempfile.mkdtemp(prefix="lanchat_test_"))
    try:
        yield tmp
    finally:
        shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any LANCHAT_* overrides from the environment."""
    import os

    for name in list(os.environ):
        if name.startswith("LANCHAT_"):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


def make_session(mode: EncryptionMode = EncryptionMode.AES, key: str = "shared_secret_key") -> ChatSession:
    """Build a session with fresh keys and the given cipher settings."""
    return ChatSession(settings=SettingsStore(CipherSettings(mode=mode, key=key)), keyring=KeyRing())


def introduce(a: ChatSession, b: ChatSession) -> None:
    """Give each session the other's public keys, as a handshake would."""
    a_keys = a.keyring.snapshot()
    b_keys = b.keyring.snapshot()
    a.keyring.set_peer_keys(b_keys.own.public_key_hex(), b_keys.hybrid.public_pem())
    b.keyring.set_peer_keys(a_keys.own.public_key_hex(), a_keys.hybrid.public_pem())


@pytest.fixture
def session_factory():
    """Factory fixture returning make_session."""
    return make_session


@pytest.fixture
def introduce_sessions():
    """Factory fixture returning introduce."""
    return introduce


@pytest.fixture
def session_pair() -> Tuple[ChatSession, ChatSession]:
    """
    Two sessions sharing an AES key that already know each other's keys.

    Returns:
        (alice, bob) tuple
    """
    alice = make_session()
    bob = make_session()
    introduce(alice, bob)
    return alice, bob


@pytest.fixture
def sample_png() -> bytes:
    """A small binary payload standing in for an image."""
    return b"\x89PNG\r\n\x1a\n" + bytes(range(256)) * 4


# Pytest marks
def pytest_configure(config):
    """
    Configure pytest markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )


# Test collection hooks
def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers based on test location.

    Args:
        config: Pytest configuration
        items: List of collected test items
    """
    for item in items:
        # Add unit marker to tests in unit/ directory
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)

        # Loopback network tests are integration tests
        if "test_network" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
