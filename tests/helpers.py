"""Shared test helpers for zapsync tests.

Importable by conftest.py and by individual test files. These are NOT
fixtures - they are regular classes and functions.
"""

from __future__ import annotations

from contextlib import contextmanager
from unittest.mock import MagicMock

import psycopg2

from zapsync.domain.models import (
    ContactIdentity,
    ContactObservation,
    ContactOverlay,
    MessageSnapshot,
)
from zapsync.infra.db import StoreNotConfiguredError
from zapsync.whatsapp.client import WhatsAppClientError


class FakeStore:
    """Store double: every txn() yields a fresh MagicMock cursor.

    Args:
        configured: Value of is_configured; txn() raises when False.
        fail_on:    Indexes of txn() calls that raise on exit (rolled back).
    """

    def __init__(self, configured: bool = True, fail_on: tuple[int, ...] = ()) -> None:
        self.is_configured = configured
        self.fail_on = set(fail_on)
        self.cursors: list[MagicMock] = []
        self.committed = 0

    @contextmanager
    def txn(self):
        if not self.is_configured:
            raise StoreNotConfiguredError("DATABASE_URL and DB_TOKEN are required")
        cur = MagicMock()
        index = len(self.cursors)
        self.cursors.append(cur)
        yield cur
        if index in self.fail_on:
            raise psycopg2.OperationalError("connection lost")
        self.committed += 1


class FakeClient:
    """In-memory WhatsAppClient.

    Queries whose name is listed in `failing` raise WhatsAppClientError.
    """

    def __init__(
        self,
        *,
        me: str | None = "5551999999999@c.us",
        ready: bool = True,
        models=(),
        pn_lid=None,
        exists=None,
        chats=(),
        messages=None,
        labels=(),
        failing=(),
    ) -> None:
        self.me = me
        self.ready = ready
        self.models = list(models)
        self.pn_lid = dict(pn_lid or {})
        self.exists = dict(exists or {})
        self.chats = list(chats)
        self.messages = dict(messages or {})
        self.labels = list(labels)
        self.failing = set(failing)
        self.calls: list[tuple[str, str | None]] = []
        self.is_configured = True

    def _call(self, name: str, arg: str | None = None) -> None:
        self.calls.append((name, arg))
        if name in self.failing or (name, arg) in self.failing:
            raise WhatsAppClientError(f"{name} failed")

    def is_ready(self):
        self._call("is_ready")
        return self.ready

    def get_my_user_id(self):
        self._call("get_my_user_id")
        return self.me

    def query_exists(self, identifier):
        self._call("query_exists", identifier)
        return self.exists.get(identifier)

    def get_pn_lid_entry(self, identifier):
        self._call("get_pn_lid_entry", identifier)
        return self.pn_lid.get(identifier)

    def list_chats(self):
        self._call("list_chats")
        return self.chats

    def get_messages(self, chat_id, count=1):
        self._call("get_messages", chat_id)
        return self.messages.get(chat_id, [])[:count]

    def list_labels(self):
        self._call("list_labels")
        return self.labels

    def list_contact_models(self):
        self._call("list_contact_models")
        return self.models

    def called(self, name: str) -> list[str | None]:
        return [arg for call, arg in self.calls if call == name]


def make_observation(
    wid: str | None = "5551988887777@c.us",
    *,
    lid: str | None = None,
    name: str | None = "Ana",
    phone: str | None = "5551988887777",
    link: tuple[str, ...] | None = None,
    labels=None,
    message: MessageSnapshot | None = None,
) -> ContactObservation:
    if link is None:
        link = tuple(v for v in (wid, phone, lid) if v)
    return ContactObservation(
        contact=ContactIdentity(
            wid=wid,
            name=name,
            phone=phone,
            phone_br=phone,
            there_is=True,
            link=link,
        ),
        overlay=ContactOverlay(lid=lid, name=name, labels=labels),
        last_message=message,
    )
