"""Tests for the WPPConnect HTTP adapter (requests session mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from zapsync.infra.settings import WppConfig
from zapsync.whatsapp.client import ContactModel, ExistsResult, WhatsAppClientError
from zapsync.whatsapp.wppconnect import (
    WppConnectClient,
    id_user,
    parse_chat,
    parse_contact_model,
    parse_exists,
    parse_label,
    parse_message,
    parse_pn_lid_entry,
    serialized_id,
)

CONFIG = WppConfig(base_url="http://wpp:21465/", session="tenant-a", token="secret", timeout=5)


def _client(payload=None, *, error=None):
    http = MagicMock()
    response = MagicMock()
    response.json.return_value = payload
    if error is not None:
        http.request.side_effect = error
    http.request.return_value = response
    return WppConnectClient(CONFIG, session=http), http


class TestParsers:
    def test_serialized_id(self):
        assert serialized_id({"_serialized": "5551@c.us"}) == "5551@c.us"
        assert serialized_id({"user": "5551", "server": "c.us"}) == "5551@c.us"
        assert serialized_id("5551@c.us") == "5551@c.us"
        assert serialized_id("") is None
        assert serialized_id(None) is None

    def test_id_user(self):
        assert id_user({"user": "5551", "server": "c.us"}) == "5551"
        assert id_user("5551@c.us") == "5551"

    def test_contact_model(self):
        model = parse_contact_model(
            {
                "id": {"user": "5551", "server": "c.us", "_serialized": "5551@c.us"},
                "name": "Ana",
                "shortName": "A",
                "isBusiness": False,
                "labels": [1, "2"],
            }
        )
        assert model == ContactModel(
            id="5551@c.us", user="5551", name="Ana", short_name="A", is_business=False, labels=("1", "2")
        )

    def test_contact_model_without_id(self):
        assert parse_contact_model({"name": "x"}) is None

    def test_exists(self):
        result = parse_exists(
            {"numberExists": True, "id": {"user": "5551", "server": "c.us", "_serialized": "5551@c.us"}}
        )
        assert result == ExistsResult(wid="5551@c.us", phone="5551")

    def test_exists_negative(self):
        assert parse_exists({"numberExists": False, "id": {"_serialized": "5551@c.us"}}) is None
        assert parse_exists({}) is None
        assert parse_exists(None) is None

    def test_exists_lid_only(self):
        result = parse_exists({"lid": {"_serialized": "9@lid"}})
        assert result.wid is None
        assert result.lid == "9@lid"

    def test_pn_lid_entry(self):
        entry = parse_pn_lid_entry(
            {
                "lid": {"_serialized": "9@lid"},
                "phoneNumber": {"user": "5551", "server": "c.us", "_serialized": "5551@c.us"},
                "contact": {"id": {"_serialized": "5551@c.us"}, "name": "Ana"},
            }
        )
        assert entry.lid == "9@lid"
        assert entry.phone_number == "5551@c.us"
        assert entry.phone == "5551"
        assert entry.contact.name == "Ana"

    def test_chat_and_message(self):
        chat = parse_chat({"id": {"_serialized": "5551@c.us"}, "unreadCount": 2, "lastReceivedKey": {"id": "x"}})
        assert chat.unread_count == 2
        assert chat.has_last_received is True

        message = parse_message({"id": {"_serialized": "true_5551@c.us_ABC"}, "body": "oi", "t": 1700000000})
        assert message.type == "chat"
        assert message.timestamp == 1700000000

    def test_label(self):
        assert parse_label({"id": 3, "name": "VIP", "hexColor": "#fff"}).id == "3"
        assert parse_label({"name": "x"}) is None


class TestClient:
    def test_request_shape(self):
        client, http = _client({"status": "success", "response": {"numberExists": True, "id": "5551@c.us"}})
        result = client.query_exists("5551@c.us")

        assert result.wid == "5551@c.us"
        method, url = http.request.call_args[0]
        assert method == "GET"
        assert url == "http://wpp:21465/api/tenant-a/check-number-status/5551@c.us"
        assert http.request.call_args.kwargs["headers"] == {"Authorization": "Bearer secret"}
        assert http.request.call_args.kwargs["timeout"] == 5

    def test_list_chats_posts(self):
        client, http = _client([{"id": {"_serialized": "5551@c.us"}}, {"id": None}])
        chats = client.list_chats()
        assert [chat.id for chat in chats] == ["5551@c.us"]
        assert http.request.call_args[0][0] == "POST"

    def test_get_messages_count(self):
        client, http = _client([])
        client.get_messages("5551@c.us", count=1)
        assert http.request.call_args.kwargs["params"] == {"count": 1}

    def test_my_user_id(self):
        client, _ = _client({"response": "5551999999999@c.us"})
        assert client.get_my_user_id() == "5551999999999@c.us"

    def test_is_ready(self):
        client, _ = _client({"status": True, "message": "Connected"})
        assert client.is_ready() is True

    def test_transport_error(self):
        client, _ = _client(error=requests.ConnectionError("refused"))
        with pytest.raises(WhatsAppClientError):
            client.list_contact_models()

    def test_http_error(self):
        client, http = _client({})
        http.request.return_value.raise_for_status.side_effect = requests.HTTPError("401")
        with pytest.raises(WhatsAppClientError):
            client.list_labels()

    def test_not_configured(self):
        http = MagicMock()
        client = WppConnectClient(WppConfig(), session=http)
        with pytest.raises(WhatsAppClientError):
            client.is_ready()
        http.request.assert_not_called()

    def test_malformed_message_timestamp(self):
        client, _ = _client([{"id": "m1", "t": "not-a-number"}])
        with pytest.raises(WhatsAppClientError):
            client.get_messages("5551@c.us")

    def test_malformed_chat(self):
        client, _ = _client([{"id": {"_serialized": "5551@c.us"}, "unreadCount": "many"}])
        with pytest.raises(WhatsAppClientError):
            client.list_chats()

    def test_non_list_payload_ignored(self):
        client, _ = _client({"unexpected": "shape"})
        assert client.list_labels() == []
