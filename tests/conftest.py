"""
Global pytest configuration and fixtures for planwise tests.
"""

import pytest

from planwise.settings import reset_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch):
    """Isolate each test from BILLING__* variables and cached settings."""
    monkeypatch.delenv("BILLING__TAX_RATE", raising=False)
    reset_settings()
    yield
    reset_settings()
