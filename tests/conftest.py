"""
Test configuration.

Logging is configured globally; commands under test may point it at a
stream that is closed afterwards, so every test restores the defaults.
"""

import pytest

from automaton.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    configure_logging(level="warning")
