"""Tenant auth gate.

Every entry point resolves the WhatsApp session's own phone number to an
active local user before touching contacts. Denial is a value (None), not
an exception; it is logged at warning level.
"""

from __future__ import annotations

import psycopg2

from zapsync.domain.models import SessionContext
from zapsync.domain.phones import digits_only, jid_user
from zapsync.infra.db import Store, StoreNotConfiguredError
from zapsync.infra.repositories.users_repository import find_active_user_id_by_phone
from zapsync.observability.logging import get_logger
from zapsync.observability.redaction import identifier_hash

logger = get_logger(__name__)


def normalize_session_phone(session_identity: str | None) -> str:
    """Digits of the session identity ("+55 51 99999-9999" or "5551...@c.us")."""
    if not session_identity:
        return ""
    # Only the user part of a JID is a phone; the server part may hold digits
    return digits_only(jid_user(session_identity) if "@" in session_identity else session_identity)


def authorize(
    store: Store,
    session_identity: str | None,
    *,
    operation: str = "unknown",
) -> SessionContext | None:
    """Resolve a session identity to the local user allowed to act for it.

    Args:
        store:            Tenant store.
        session_identity: Phone or JID reported by the live session.
        operation:        Entry point name, for the denial log line.

    Returns:
        SessionContext when an active user's profile phone (or one of its
        wa_phones) matches, None otherwise.
    """
    phone = normalize_session_phone(session_identity)
    if not phone:
        logger.warning(
            "unauthorized access",
            extra={"extra_fields": {"operation": operation, "reason": "no_session_identity"}},
        )
        return None

    try:
        with store.txn() as cur:
            user_id = find_active_user_id_by_phone(cur, phone)
    except (psycopg2.Error, StoreNotConfiguredError) as e:
        logger.error(
            "auth check failed",
            extra={"extra_fields": {"operation": operation, "error_type": type(e).__name__}},
        )
        return None

    if user_id is None:
        logger.warning(
            "unauthorized access",
            extra={
                "extra_fields": {
                    "operation": operation,
                    "reason": "no_active_user",
                    "session_hash": identifier_hash(phone),
                }
            },
        )
        return None

    return SessionContext(user_id=user_id, session_phone=phone)
