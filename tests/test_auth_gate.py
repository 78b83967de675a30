"""Tests for the tenant auth gate."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from helpers import FakeStore
from zapsync.domain.auth_gate import authorize, normalize_session_phone


def _users(cur, phone):
    return "user-1" if phone == "5551999999999" else None


@pytest.fixture
def users():
    with patch("zapsync.domain.auth_gate.find_active_user_id_by_phone", side_effect=_users) as mock_find:
        yield mock_find


class TestNormalizeSessionPhone:
    @pytest.mark.parametrize(
        "identity",
        ["+55 51 99999-9999", "5551999999999", "5551999999999@c.us", "(55) 51 99999 9999"],
    )
    def test_forms(self, identity):
        assert normalize_session_phone(identity) == "5551999999999"

    def test_empty(self):
        assert normalize_session_phone(None) == ""
        assert normalize_session_phone("") == ""


class TestAuthorize:
    def test_formatted_phone_matches(self, users, store):
        ctx = authorize(store, "+55 51 99999-9999", operation="check_number")
        assert ctx.user_id == "user-1"
        assert ctx.session_phone == "5551999999999"

    def test_jid_matches(self, users, store):
        assert authorize(store, "5551999999999@c.us").user_id == "user-1"

    def test_other_number_denied(self, users, store):
        assert authorize(store, "5551988888888") is None

    def test_missing_identity_denied_without_query(self, users, store):
        assert authorize(store, None) is None
        assert store.cursors == []
        users.assert_not_called()

    def test_store_error_denies(self, users):
        assert authorize(FakeStore(fail_on=(0,)), "5551999999999") is None

    def test_store_not_configured_denies(self, users):
        assert authorize(FakeStore(configured=False), "5551999999999") is None
        users.assert_not_called()
