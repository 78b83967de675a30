"""Shared pytest fixtures for zapsync tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from helpers import FakeClient, FakeStore  # noqa: E402
from zapsync.domain.models import SessionContext  # noqa: E402
from zapsync.observability.correlation import correlation_id_var  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_correlation_id():
    """Run every test without a leftover correlation ID."""
    token = correlation_id_var.set("")
    yield
    correlation_id_var.reset(token)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def ctx():
    return SessionContext(user_id="user-1", session_phone="5551999999999")
