"""
Shared fixtures.
"""

import pytest

from factcheck_billing.config.loader import CONFIG_ENV_VAR, reset_pricing_config


@pytest.fixture(autouse=True)
def default_pricing(monkeypatch):
    """Run every test against the built-in pricing configuration."""
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    reset_pricing_config()
    yield
    reset_pricing_config()
