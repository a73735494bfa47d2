"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any import of notifier.core.config so
the settings object is built from test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "0")

from unittest.mock import Mock

import pytest


@pytest.fixture
def clock() -> Mock:
    """Deterministic UNIX clock; set ``clock.return_value`` to move time."""
    return Mock(return_value=1000.0)
