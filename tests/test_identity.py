"""Tests for the identity resolver (repository mocked, no DB)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from zapsync.domain.identity import IdentityResolutionError, resolve_contact_id
from zapsync.domain.models import ContactIdentity

WID = "5551988887777@c.us"
LID = "123456789@lid"


@pytest.fixture
def repo():
    with patch("zapsync.domain.identity.repo") as mock_repo:
        mock_repo.find_contact_id_by_wid.return_value = None
        mock_repo.find_contact_id_by_lid.return_value = None
        mock_repo.upsert_contact_by_wid.return_value = 10
        mock_repo.insert_contact.return_value = 20
        yield mock_repo


def _resolve(contact: ContactIdentity, lid: str | None = None) -> int:
    return resolve_contact_id(MagicMock(), user_id="user-1", contact=contact, lid=lid)


class TestPrimaryIdentifier:
    def test_known_wid_is_upserted(self, repo):
        repo.find_contact_id_by_wid.return_value = 10
        assert _resolve(ContactIdentity(wid=WID), lid=LID) == 10
        repo.upsert_contact_by_wid.assert_called_once()
        repo.find_contact_id_by_lid.assert_not_called()

    def test_new_wid_without_lid(self, repo):
        assert _resolve(ContactIdentity(wid=WID)) == 10
        repo.find_contact_id_by_lid.assert_not_called()
        repo.insert_contact.assert_not_called()

    def test_new_wid_promotes_lid_orphan(self, repo):
        repo.find_contact_id_by_lid.return_value = 7
        contact = ContactIdentity(wid=WID, name="Ana")

        assert _resolve(contact, lid=LID) == 7

        repo.find_contact_id_by_lid.assert_called_once()
        assert repo.find_contact_id_by_lid.call_args.kwargs == {
            "user_id": "user-1",
            "lid": LID,
            "orphan_only": True,
        }
        repo.update_contact.assert_called_once()
        assert repo.update_contact.call_args.kwargs["contact_id"] == 7
        assert repo.update_contact.call_args.kwargs["contact"] == contact
        repo.upsert_contact_by_wid.assert_not_called()

    def test_new_wid_with_unknown_lid(self, repo):
        assert _resolve(ContactIdentity(wid=WID), lid=LID) == 10
        repo.update_contact.assert_not_called()


class TestSecondaryIdentifier:
    def test_known_lid_refreshed_in_place(self, repo):
        repo.find_contact_id_by_lid.return_value = 7
        assert _resolve(ContactIdentity(wid=None, name="Novo nome"), lid=LID) == 7
        assert repo.find_contact_id_by_lid.call_args.kwargs == {"user_id": "user-1", "lid": LID}
        repo.update_contact.assert_called_once()
        repo.insert_contact.assert_not_called()

    def test_unknown_lid_inserts_orphan(self, repo):
        assert _resolve(ContactIdentity(wid=None), lid=LID) == 20
        repo.insert_contact.assert_called_once()


def test_no_identifier_inserts(repo):
    assert _resolve(ContactIdentity(wid=None, phone="555188887777", there_is=False)) == 20
    repo.find_contact_id_by_wid.assert_not_called()
    repo.find_contact_id_by_lid.assert_not_called()


def test_store_error_wrapped(repo):
    repo.find_contact_id_by_wid.side_effect = psycopg2.OperationalError("gone")
    with pytest.raises(IdentityResolutionError):
        _resolve(ContactIdentity(wid=WID))
