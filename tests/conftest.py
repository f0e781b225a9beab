"""
Shared test configuration and fixtures for AtomPub client tests.
"""

import os

import pytest

from social.graze.atompub.config import ClientSettings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep ATOMPUB_* variables from the host environment out of tests."""
    for key in list(os.environ):
        if key.startswith("ATOMPUB_") or key == "LOGGING_CONFIG_FILE":
            monkeypatch.delenv(key)


@pytest.fixture
def settings() -> ClientSettings:
    return ClientSettings(user_agent="atompub-tests/1.0", timeout=5)
