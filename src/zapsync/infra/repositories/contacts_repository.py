"""Contacts repository - canonical contacts, per-user overlays, message snapshots.

Uses raw SQL with psycopg2 (no ORM). Every write is an upsert keyed by the
natural unique key of its table:

  contacts          → wid (nullable, unique when present)
  contacts_users    → (contact_id, user_id)
  contact_messages  → (contact_id, user_id)

Absent (None) scalars never overwrite stored values; ``link`` arrays are
merged (existing order kept, new identifiers appended).

The caller is responsible for running these inside a transaction
(with store.txn() as cur:).
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from psycopg2.extensions import cursor as PgCursor

from zapsync.domain.models import (
    ContactIdentity,
    ContactOverlay,
    ContactRecord,
    ContactStats,
    Label,
    MessageSnapshot,
)
from zapsync.infra.schema import (
    RECORD_COLUMNS,
    RECORD_SELECT,
    V_ACTIVE_CONTACTS,
    V_DELETED_CONTACTS,
    V_USER_CONTACT_STATS,
    VIEW_COLUMNS_SQL,
)

DEFAULT_LIST_LIMIT = 500


def _merge_link_sql(incoming: str) -> str:
    """SQL expression appending identifiers from `incoming` missing in contacts.link."""
    return f"""COALESCE(contacts.link, '[]'::jsonb) || COALESCE((
            SELECT jsonb_agg(e.value ORDER BY e.ord)
            FROM jsonb_array_elements(COALESCE({incoming}, '[]'::jsonb)) WITH ORDINALITY AS e(value, ord)
            WHERE NOT COALESCE(contacts.link, '[]'::jsonb) @> jsonb_build_array(e.value)
        ), '[]'::jsonb)"""


def _labels_json(labels: tuple[Label, ...] | None) -> str | None:
    if labels is None:
        return None
    return json.dumps([label.to_json() for label in labels])


# ── Contacts ─────────────────────────────────────────────────────────────────


def find_contact_id_by_wid(cur: PgCursor, wid: str) -> int | None:
    cur.execute("SELECT id FROM contacts WHERE wid = %s", (wid,))
    row = cur.fetchone()
    return int(row[0]) if row else None


def find_contact_id_by_lid(
    cur: PgCursor,
    *,
    user_id: str,
    lid: str,
    orphan_only: bool = False,
) -> int | None:
    """Find the contact a user's overlay links to a secondary identifier.

    The lid lives on contacts_users, so the lookup is scoped to one user.
    Soft-deleted overlays still count: identity is not a visibility concern.

    Args:
        cur:         Database cursor.
        user_id:     Calling user.
        lid:         Secondary identifier (``...@lid``).
        orphan_only: Only match contacts without a primary identifier.

    Returns:
        contact_id, or None when the user never recorded this lid.
    """
    cur.execute(
        """
        SELECT cu.contact_id
        FROM contacts_users cu
        JOIN contacts c ON c.id = cu.contact_id
        WHERE cu.user_id = %s
          AND cu.lid = %s
          AND (NOT %s OR c.wid IS NULL)
        ORDER BY cu.updated_at DESC
        LIMIT 1
        """,
        (user_id, lid, orphan_only),
    )
    row = cur.fetchone()
    return int(row[0]) if row else None


def upsert_contact_by_wid(cur: PgCursor, contact: ContactIdentity) -> int:
    """Insert a contact or refresh the one holding the same wid.

    Returns:
        contacts.id of the inserted or updated row.
    """
    if not contact.wid:
        raise ValueError("upsert_contact_by_wid requires a wid")

    cur.execute(
        f"""
        INSERT INTO contacts (wid, name, phone, "phoneBR", there_is, link)
        VALUES (%s, %s, %s, %s, %s, %s::jsonb)
        ON CONFLICT (wid) DO UPDATE
        SET name      = COALESCE(EXCLUDED.name, contacts.name),
            phone     = COALESCE(EXCLUDED.phone, contacts.phone),
            "phoneBR" = COALESCE(EXCLUDED."phoneBR", contacts."phoneBR"),
            there_is  = EXCLUDED.there_is,
            link      = {_merge_link_sql("EXCLUDED.link")},
            updated_at = now()
        RETURNING id
        """,  # noqa: S608
        (
            contact.wid,
            contact.name,
            contact.phone,
            contact.phone_br,
            contact.there_is,
            json.dumps(list(contact.link)),
        ),
    )
    row = cur.fetchone()
    return int(row[0])


def update_contact(cur: PgCursor, *, contact_id: int, contact: ContactIdentity) -> None:
    """Refresh mutable fields of an existing contact in place.

    A non-null wid is written only where the row has none, which promotes
    an orphan (lid-only) contact to a full one.
    """
    cur.execute(
        f"""
        UPDATE contacts
        SET wid       = COALESCE(contacts.wid, %s),
            name      = COALESCE(%s, contacts.name),
            phone     = COALESCE(%s, contacts.phone),
            "phoneBR" = COALESCE(%s, contacts."phoneBR"),
            there_is  = %s,
            link      = {_merge_link_sql("%s::jsonb")},
            updated_at = now()
        WHERE id = %s
        """,  # noqa: S608
        (
            contact.wid,
            contact.name,
            contact.phone,
            contact.phone_br,
            contact.there_is,
            json.dumps(list(contact.link)),
            contact_id,
        ),
    )


def insert_contact(cur: PgCursor, contact: ContactIdentity) -> int:
    """Insert a contact without relying on wid (orphan or unknown number)."""
    cur.execute(
        """
        INSERT INTO contacts (wid, name, phone, "phoneBR", there_is, link)
        VALUES (%s, %s, %s, %s, %s, %s::jsonb)
        RETURNING id
        """,
        (
            contact.wid,
            contact.name,
            contact.phone,
            contact.phone_br,
            contact.there_is,
            json.dumps(list(contact.link)),
        ),
    )
    row = cur.fetchone()
    return int(row[0])


# ── Overlay and message snapshot ─────────────────────────────────────────────


def upsert_contact_user(
    cur: PgCursor,
    *,
    contact_id: int,
    user_id: str,
    overlay: ContactOverlay,
) -> None:
    """Create or refresh the user's overlay for a contact.

    deleted_at is never touched here: a sync does not undo a soft delete.
    """
    cur.execute(
        """
        INSERT INTO contacts_users (
            contact_id, user_id, lid, name, pushname, short_name,
            verified_name, type, is_business, is_enterprise,
            is_contact_sync_completed, sync_to_addressbook, is_group, wa_labels
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s::jsonb)
        ON CONFLICT (contact_id, user_id) DO UPDATE
        SET lid                       = COALESCE(EXCLUDED.lid, contacts_users.lid),
            name                      = COALESCE(EXCLUDED.name, contacts_users.name),
            pushname                  = COALESCE(EXCLUDED.pushname, contacts_users.pushname),
            short_name                = COALESCE(EXCLUDED.short_name, contacts_users.short_name),
            verified_name             = COALESCE(EXCLUDED.verified_name, contacts_users.verified_name),
            type                      = COALESCE(EXCLUDED.type, contacts_users.type),
            is_business               = COALESCE(EXCLUDED.is_business, contacts_users.is_business),
            is_enterprise             = COALESCE(EXCLUDED.is_enterprise, contacts_users.is_enterprise),
            is_contact_sync_completed = COALESCE(EXCLUDED.is_contact_sync_completed,
                                                 contacts_users.is_contact_sync_completed),
            sync_to_addressbook       = COALESCE(EXCLUDED.sync_to_addressbook,
                                                 contacts_users.sync_to_addressbook),
            is_group                  = EXCLUDED.is_group,
            wa_labels                 = COALESCE(EXCLUDED.wa_labels, contacts_users.wa_labels),
            updated_at                = now()
        """,
        (
            contact_id,
            user_id,
            overlay.lid,
            overlay.name,
            overlay.pushname,
            overlay.short_name,
            overlay.verified_name,
            overlay.type,
            overlay.is_business,
            overlay.is_enterprise,
            overlay.is_contact_sync_completed,
            overlay.sync_to_addressbook,
            overlay.is_group,
            _labels_json(overlay.labels),
        ),
    )


def upsert_contact_message(
    cur: PgCursor,
    *,
    contact_id: int,
    user_id: str,
    message: MessageSnapshot,
) -> None:
    """Replace the pair's message snapshot (last write wins, no timestamp guard)."""
    cur.execute(
        """
        INSERT INTO contact_messages (
            contact_id, user_id, message_id, chat_id, body, type,
            timestamp_ms, ack, is_forwarded, unread_count, has_unread, exists_flag
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (contact_id, user_id) DO UPDATE
        SET message_id   = EXCLUDED.message_id,
            chat_id      = EXCLUDED.chat_id,
            body         = EXCLUDED.body,
            type         = EXCLUDED.type,
            timestamp_ms = EXCLUDED.timestamp_ms,
            ack          = EXCLUDED.ack,
            is_forwarded = EXCLUDED.is_forwarded,
            unread_count = EXCLUDED.unread_count,
            has_unread   = EXCLUDED.has_unread,
            exists_flag  = EXCLUDED.exists_flag,
            updated_at   = now()
        """,
        (
            contact_id,
            user_id,
            message.message_id,
            message.chat_id,
            message.body,
            message.type,
            message.timestamp_ms,
            message.ack,
            message.is_forwarded,
            message.unread_count,
            message.has_unread,
            message.exists_flag,
        ),
    )


def set_contact_user_deleted(
    cur: PgCursor,
    *,
    contact_id: int,
    user_id: str,
    deleted: bool,
) -> bool:
    """Soft delete (deleted=True) or restore (deleted=False) an overlay.

    Overlay fields are left untouched. Deleting an already deleted row keeps
    its first deleted_at.

    Returns:
        True if the overlay exists, False otherwise.
    """
    cur.execute(
        """
        UPDATE contacts_users
        SET deleted_at = CASE WHEN %s THEN COALESCE(deleted_at, now()) ELSE NULL END,
            updated_at = now()
        WHERE contact_id = %s AND user_id = %s
        """,
        (deleted, contact_id, user_id),
    )
    return cur.rowcount > 0


# ── Reads ────────────────────────────────────────────────────────────────────


def row_to_record(row: Sequence[Any]) -> ContactRecord:
    data = dict(zip(RECORD_COLUMNS, row))

    overlay = None
    if data["user_id"] is not None:
        labels = data["wa_labels"]
        if isinstance(labels, str):
            labels = json.loads(labels)
        overlay = ContactOverlay(
            lid=data["lid"],
            name=data["user_name"],
            pushname=data["pushname"],
            short_name=data["short_name"],
            verified_name=data["verified_name"],
            type=data["type"],
            is_business=data["is_business"],
            is_enterprise=data["is_enterprise"],
            is_contact_sync_completed=data["is_contact_sync_completed"],
            sync_to_addressbook=data["sync_to_addressbook"],
            is_group=bool(data["is_group"]),
            labels=tuple(Label.from_json(item) for item in labels) if labels is not None else None,
        )

    last_message = None
    if data["message_id"] is not None:
        last_message = MessageSnapshot(
            message_id=data["message_id"],
            chat_id=data["chat_id"],
            body=data["body"],
            type=data["message_type"],
            timestamp_ms=data["timestamp_ms"],
            ack=data["ack"],
            is_forwarded=bool(data["is_forwarded"]),
            unread_count=data["unread_count"] or 0,
            has_unread=bool(data["has_unread"]),
            exists_flag=bool(data["exists_flag"]),
        )

    link = data["link"]
    if isinstance(link, str):
        link = json.loads(link)

    return ContactRecord(
        contact_id=int(data["contact_id"]),
        wid=data["wid"],
        name=data["contact_name"],
        phone=data["phone"],
        phone_br=data["phone_br"],
        there_is=bool(data["there_is"]),
        link=tuple(link or ()),
        overlay=overlay,
        last_message=last_message,
        deleted_at=data["deleted_at"],
    )


def find_contact_by_link(
    cur: PgCursor,
    *,
    user_id: str,
    identifiers: Sequence[str],
) -> ContactRecord | None:
    """Find a contact whose link array holds any of the identifiers.

    The user's active overlay and message snapshot are joined when present;
    contacts the user has an overlay for win over tenant-only matches.
    """
    if not identifiers:
        return None
    cur.execute(
        f"""
        SELECT {RECORD_SELECT}
        FROM contacts c
        LEFT JOIN contacts_users cu
               ON cu.contact_id = c.id AND cu.user_id = %s AND cu.deleted_at IS NULL
        LEFT JOIN contact_messages cm
               ON cm.contact_id = c.id AND cm.user_id = %s
        WHERE c.link ?| %s
        ORDER BY (cu.user_id IS NULL), c.updated_at DESC
        LIMIT 1
        """,  # noqa: S608
        (user_id, user_id, list(identifiers)),
    )
    row = cur.fetchone()
    return row_to_record(row) if row else None


def get_contact_record(cur: PgCursor, *, contact_id: int, user_id: str) -> ContactRecord | None:
    cur.execute(
        f"""
        SELECT {RECORD_SELECT}
        FROM contacts c
        LEFT JOIN contacts_users cu
               ON cu.contact_id = c.id AND cu.user_id = %s AND cu.deleted_at IS NULL
        LEFT JOIN contact_messages cm
               ON cm.contact_id = c.id AND cm.user_id = %s
        WHERE c.id = %s
        """,  # noqa: S608
        (user_id, user_id, contact_id),
    )
    row = cur.fetchone()
    return row_to_record(row) if row else None


def list_contact_records(
    cur: PgCursor,
    *,
    user_id: str,
    deleted: bool = False,
    limit: int = DEFAULT_LIST_LIMIT,
) -> list[ContactRecord]:
    """List a user's contacts from the active or the deleted view."""
    view = V_DELETED_CONTACTS if deleted else V_ACTIVE_CONTACTS
    cur.execute(
        f"""
        SELECT {VIEW_COLUMNS_SQL}
        FROM {view}
        WHERE user_id = %s
        ORDER BY COALESCE(user_name, contact_name) NULLS LAST, contact_id
        LIMIT %s
        """,  # noqa: S608
        (user_id, limit),
    )
    return [row_to_record(row) for row in cur.fetchall()]


def get_user_stats(cur: PgCursor, *, user_id: str) -> ContactStats:
    cur.execute(
        f"""
        SELECT active_contacts, deleted_contacts, groups, unread_chats, unread_messages
        FROM {V_USER_CONTACT_STATS}
        WHERE user_id = %s
        """,  # noqa: S608
        (user_id,),
    )
    row = cur.fetchone()
    if row is None:
        return ContactStats(user_id=user_id)
    return ContactStats(
        user_id=user_id,
        active_contacts=int(row[0] or 0),
        deleted_contacts=int(row[1] or 0),
        groups=int(row[2] or 0),
        unread_chats=int(row[3] or 0),
        unread_messages=int(row[4] or 0),
    )
