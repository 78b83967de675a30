"""Names shared between the SQL migrations and the repositories.

The DDL lives in ``migrations/sql/001_contacts_schema.sql``. Every query
that returns a contact record selects ``RECORD_COLUMNS`` in this order,
either from one of the views or through ``RECORD_SELECT`` on the base
tables, so ``row_to_record`` reads a single shape.
"""

V_ACTIVE_CONTACTS = "v_active_contacts"
V_DELETED_CONTACTS = "v_deleted_contacts"
V_USER_CONTACT_STATS = "v_user_contact_stats"

RECORD_COLUMNS = (
    "contact_id",
    "wid",
    "contact_name",
    "phone",
    "phone_br",
    "there_is",
    "link",
    "user_id",
    "lid",
    "user_name",
    "pushname",
    "short_name",
    "verified_name",
    "type",
    "is_business",
    "is_enterprise",
    "is_contact_sync_completed",
    "sync_to_addressbook",
    "is_group",
    "wa_labels",
    "deleted_at",
    "message_id",
    "chat_id",
    "body",
    "message_type",
    "timestamp_ms",
    "ack",
    "is_forwarded",
    "unread_count",
    "has_unread",
    "exists_flag",
)

# Base-table expressions for RECORD_COLUMNS (aliases c, cu, cm)
RECORD_SELECT = """
    c.id AS contact_id,
    c.wid,
    c.name AS contact_name,
    c.phone,
    c."phoneBR" AS phone_br,
    c.there_is,
    c.link,
    cu.user_id,
    cu.lid,
    cu.name AS user_name,
    cu.pushname,
    cu.short_name,
    cu.verified_name,
    cu.type,
    cu.is_business,
    cu.is_enterprise,
    cu.is_contact_sync_completed,
    cu.sync_to_addressbook,
    cu.is_group,
    cu.wa_labels,
    cu.deleted_at,
    cm.message_id,
    cm.chat_id,
    cm.body,
    cm.type AS message_type,
    cm.timestamp_ms,
    cm.ack,
    cm.is_forwarded,
    cm.unread_count,
    cm.has_unread,
    cm.exists_flag
"""

VIEW_COLUMNS_SQL = ", ".join(RECORD_COLUMNS)
