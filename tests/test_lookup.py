"""Tests for the read-through contact lookup."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2

from helpers import FakeClient, FakeStore
from zapsync.domain.lookup import ContactLookup, lookup_keys
from zapsync.domain.models import ContactRecord
from zapsync.whatsapp.client import ContactModel, ExistsResult, PnLidEntry

WID = "5551988887777@c.us"

STORED = ContactRecord(
    contact_id=3,
    wid=WID,
    name="Ana",
    phone="5551988887777",
    phone_br="5551988887777",
    there_is=True,
    link=(WID, "5551988887777"),
)


def test_lookup_keys():
    assert lookup_keys(WID) == (WID, "5551988887777")
    assert lookup_keys("5551988887777") == ("5551988887777",)


class TestCacheHit:
    def test_served_without_live_client(self, store, ctx):
        client = MagicMock()
        engine = MagicMock()
        with patch("zapsync.domain.lookup.find_contact_by_link", return_value=STORED) as mock_find:
            result = ContactLookup(store, client, engine).lookup(ctx, WID)

        assert result.there_is is True
        assert result.data is STORED
        assert mock_find.call_args.kwargs["identifiers"] == (WID, "5551988887777")
        client.query_exists.assert_not_called()
        engine.save.assert_not_called()

    def test_stored_negative_answer_wins(self, store, ctx):
        negative = ContactRecord(
            contact_id=4, wid=None, name=None, phone="555188887777",
            phone_br="5551988887777", there_is=False,
        )
        client = MagicMock()
        with patch("zapsync.domain.lookup.find_contact_by_link", return_value=negative):
            result = ContactLookup(store, client, MagicMock()).lookup(ctx, "555188887777")
        assert result.there_is is False
        client.query_exists.assert_not_called()


class TestCacheMiss:
    def test_written_through_and_read_back(self, store, ctx):
        client = FakeClient(
            exists={WID: ExistsResult(wid=WID, phone="5551988887777")},
            pn_lid={WID: PnLidEntry(lid="1@lid", phone_number=WID, contact=ContactModel(id=WID, name="Ana"))},
        )
        engine = MagicMock()
        engine.save.return_value = 3
        with patch("zapsync.domain.lookup.find_contact_by_link", return_value=None), \
             patch("zapsync.domain.lookup.get_contact_record", return_value=STORED) as mock_get:
            result = ContactLookup(store, client, engine).lookup(ctx, WID)

        assert result.there_is is True
        assert result.data is STORED
        observation = engine.save.call_args[0][1]
        assert observation.overlay.lid == "1@lid"
        assert mock_get.call_args.kwargs == {"contact_id": 3, "user_id": "user-1"}

    def test_unknown_number_cached_as_negative(self, store, ctx):
        engine = MagicMock()
        engine.save.return_value = 9
        with patch("zapsync.domain.lookup.find_contact_by_link", return_value=None), \
             patch("zapsync.domain.lookup.get_contact_record", return_value=None):
            result = ContactLookup(store, FakeClient(), engine).lookup(ctx, "555188887777")

        assert result.there_is is False
        observation = engine.save.call_args[0][1]
        assert observation.contact.there_is is False
        assert "5551988887777" in observation.contact.link
        assert result.data.phone_br == "5551988887777"

    def test_pn_lid_failure_tolerated(self, store, ctx):
        client = FakeClient(
            exists={WID: ExistsResult(wid=WID, phone="5551988887777")},
            failing={"get_pn_lid_entry"},
        )
        engine = MagicMock()
        engine.save.return_value = None
        with patch("zapsync.domain.lookup.find_contact_by_link", return_value=None):
            result = ContactLookup(store, client, engine).lookup(ctx, WID)

        assert result.there_is is True
        assert result.data.wid == WID
        assert result.data.contact_id is None

    def test_cache_read_failure_falls_back_to_live(self, ctx):
        store = FakeStore(fail_on=(0,))
        client = FakeClient(exists={WID: ExistsResult(wid=WID)})
        engine = MagicMock()
        engine.save.return_value = None
        with patch("zapsync.domain.lookup.find_contact_by_link", side_effect=psycopg2.OperationalError("x")):
            result = ContactLookup(store, client, engine).lookup(ctx, WID)
        assert result.there_is is True
        assert client.called("query_exists") == [WID]
