"""Live WhatsApp client contract.

The sync engine never talks to the messaging session directly; it consumes
these read-only queries. Implementations raise WhatsAppClientError for any
transport or session failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class WhatsAppClientError(Exception):
    """Raised when the live client cannot answer a query."""

    pass


@dataclass(frozen=True)
class ExistsResult:
    """Answer of "does identifier exist"."""

    wid: str | None
    lid: str | None = None
    name: str | None = None
    phone: str | None = None  # user part of wid


@dataclass(frozen=True)
class ContactModel:
    """A contact model as enumerated by the client."""

    id: str
    user: str | None = None
    name: str | None = None
    pushname: str | None = None
    short_name: str | None = None
    verified_name: str | None = None
    is_business: bool | None = None
    is_enterprise: bool | None = None
    is_contact_sync_completed: bool | None = None
    is_address_book_contact: bool = False
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class PnLidEntry:
    """Phone-number / linked-identity pairing for one identifier."""

    lid: str | None = None
    phone_number: str | None = None  # serialized wid, e.g. "5551...@c.us"
    phone: str | None = None
    contact: ContactModel | None = None


@dataclass(frozen=True)
class ChatSummary:
    id: str
    unread_count: int = 0
    has_last_received: bool = False


@dataclass(frozen=True)
class ChatMessage:
    id: str
    body: str | None = None
    type: str | None = None
    timestamp: int | None = None
    ack: int | None = None
    is_forwarded: bool = False


@dataclass(frozen=True)
class LabelInfo:
    id: str
    name: str | None = None
    color: str | None = None


class WhatsAppClient(Protocol):
    @property
    def is_configured(self) -> bool: ...

    def is_ready(self) -> bool: ...

    def get_my_user_id(self) -> str | None: ...

    def query_exists(self, identifier: str) -> ExistsResult | None: ...

    def get_pn_lid_entry(self, identifier: str) -> PnLidEntry | None: ...

    def list_chats(self) -> list[ChatSummary]: ...

    def get_messages(self, chat_id: str, count: int = 1) -> list[ChatMessage]: ...

    def list_labels(self) -> list[LabelInfo]: ...

    def list_contact_models(self) -> list[ContactModel]: ...
