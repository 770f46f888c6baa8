"""Shared fixtures for request log tests."""

import pytest

from reqlog.config import StoreConfig
from reqlog.store.session import open_session


@pytest.fixture
def session():
    """Create an in-memory session for testing."""
    session = open_session(":memory:", StoreConfig())
    yield session
    session.close()
