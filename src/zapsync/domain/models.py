"""Contact identity models.

Absent values
─────────────
``None`` is the only "absent" marker. When an observation is written,
absent scalar fields keep whatever the store already has. For labels,
``None`` means the label directory was not consulted (stored labels are
kept) while an empty tuple means the contact is known to have no labels.

JSON (``link``, ``wa_labels``, ``wa_phones``) only exists at the storage
boundary; in memory these are tuples.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Label:
    id: str
    name: str | None = None
    color: str | None = None

    def to_json(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "Label":
        return cls(
            id=str(data.get("id")),
            name=data.get("name"),
            color=data.get("color"),
        )


@dataclass(frozen=True)
class ContactIdentity:
    """Canonical, tenant-wide contact attributes (``contacts`` row)."""

    wid: str | None
    name: str | None = None
    phone: str | None = None
    phone_br: str | None = None
    there_is: bool = True
    link: tuple[str, ...] = ()


@dataclass(frozen=True)
class ContactOverlay:
    """Per-user attributes (``contacts_users`` row)."""

    lid: str | None = None
    name: str | None = None
    pushname: str | None = None
    short_name: str | None = None
    verified_name: str | None = None
    type: str | None = None
    is_business: bool | None = None
    is_enterprise: bool | None = None
    is_contact_sync_completed: bool | None = None
    sync_to_addressbook: bool | None = None
    is_group: bool = False
    labels: tuple[Label, ...] | None = None


@dataclass(frozen=True)
class MessageSnapshot:
    """Latest known message for a (contact, user) pair."""

    message_id: str
    chat_id: str | None = None
    body: str | None = None
    type: str | None = None
    timestamp_ms: int | None = None
    ack: int | None = None
    is_forwarded: bool = False
    unread_count: int = 0
    has_unread: bool = False
    exists_flag: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "chat_id": self.chat_id,
            "body": self.body,
            "type": self.type,
            "timestamp_ms": self.timestamp_ms,
            "ack": self.ack,
            "is_forwarded": self.is_forwarded,
            "unread_count": self.unread_count,
            "has_unread": self.has_unread,
            "exists_flag": self.exists_flag,
        }


@dataclass(frozen=True)
class ContactObservation:
    """One contact as seen by the live client, ready to be written."""

    contact: ContactIdentity
    overlay: ContactOverlay = field(default_factory=ContactOverlay)
    last_message: MessageSnapshot | None = None

    @property
    def is_addressable(self) -> bool:
        return bool(self.contact.wid or self.overlay.lid)


@dataclass(frozen=True)
class SessionContext:
    """Authorized caller: local user id plus the session phone it matched."""

    user_id: str
    session_phone: str


def _overlay_to_dict(overlay: ContactOverlay) -> dict[str, Any]:
    return {
        "lid": overlay.lid,
        "name": overlay.name,
        "pushname": overlay.pushname,
        "short_name": overlay.short_name,
        "verified_name": overlay.verified_name,
        "type": overlay.type,
        "is_business": overlay.is_business,
        "is_enterprise": overlay.is_enterprise,
        "is_contact_sync_completed": overlay.is_contact_sync_completed,
        "sync_to_addressbook": overlay.sync_to_addressbook,
        "is_group": overlay.is_group,
        "labels": [label.to_json() for label in overlay.labels or ()],
    }


@dataclass(frozen=True)
class ContactRecord:
    """Read shape of a contact, identical for cache hits and live lookups."""

    contact_id: int | None
    wid: str | None
    name: str | None
    phone: str | None
    phone_br: str | None
    there_is: bool
    link: tuple[str, ...] = ()
    overlay: ContactOverlay | None = None
    last_message: MessageSnapshot | None = None
    deleted_at: datetime | None = None

    @property
    def lid(self) -> str | None:
        return self.overlay.lid if self.overlay else None

    @classmethod
    def from_observation(cls, observation: ContactObservation) -> "ContactRecord":
        contact = observation.contact
        return cls(
            contact_id=None,
            wid=contact.wid,
            name=contact.name,
            phone=contact.phone,
            phone_br=contact.phone_br,
            there_is=contact.there_is,
            link=contact.link,
            overlay=observation.overlay,
            last_message=observation.last_message,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.contact_id,
            "wid": self.wid,
            "lid": self.lid,
            "name": self.name,
            "phone": self.phone,
            "phoneBR": self.phone_br,
            "there_is": self.there_is,
            "link": list(self.link),
            "user": _overlay_to_dict(self.overlay) if self.overlay else None,
            "last_message": self.last_message.to_dict() if self.last_message else None,
            "deleted_at": self.deleted_at.isoformat() if self.deleted_at else None,
        }


@dataclass(frozen=True)
class LookupResult:
    there_is: bool
    data: ContactRecord | None = None
    unauthorized: bool = False
    error: str | None = None

    @classmethod
    def denied(cls) -> "LookupResult":
        return cls(there_is=False, unauthorized=True)

    @classmethod
    def failure(cls, error: str) -> "LookupResult":
        return cls(there_is=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if self.unauthorized:
            return {"there_is": False, "data": {"unauthorized": True}}
        if self.error:
            return {"there_is": False, "data": None, "error": self.error}
        return {"there_is": self.there_is, "data": self.data.to_dict() if self.data else None}


@dataclass(frozen=True)
class ServiceResult(Generic[T]):
    """Outcome of a management call: a value, a denial or a store failure."""

    value: T | None = None
    unauthorized: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return not self.unauthorized and self.error is None

    @classmethod
    def denied(cls) -> "ServiceResult[T]":
        return cls(unauthorized=True)

    @classmethod
    def failure(cls, error: str) -> "ServiceResult[T]":
        return cls(error=error)


@dataclass(frozen=True)
class BatchResult:
    saved: int = 0
    failed: int = 0
    skipped: int = 0


@dataclass(frozen=True)
class SyncSummary:
    success: bool
    total: int = 0
    saved: int = 0
    failed: int = 0
    skipped: int = 0
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "SyncSummary":
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "total": self.total,
            "saved": self.saved,
            "failed": self.failed,
            "skipped": self.skipped,
        }


@dataclass(frozen=True)
class ContactStats:
    user_id: str
    active_contacts: int = 0
    deleted_contacts: int = 0
    groups: int = 0
    unread_chats: int = 0
    unread_messages: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "active_contacts": self.active_contacts,
            "deleted_contacts": self.deleted_contacts,
            "groups": self.groups,
            "unread_chats": self.unread_chats,
            "unread_messages": self.unread_messages,
        }


@dataclass(frozen=True)
class ScanOptions:
    """Options for a bulk contact scan."""

    include_groups: bool = False
    include_unsaved: bool = False
    validate_server: bool = False
    include_last_message: bool = True
    include_labels: bool = True
    limit: int | None = None
