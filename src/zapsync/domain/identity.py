"""Identity resolver - the single source of identifier precedence.

Given a contact observation (primary identifier ``wid``, optional
secondary identifier ``lid`` scoped to the calling user), return the id of
the canonical ``contacts`` row, creating it when needed:

  1. wid known:
     a. a row already holds this wid → upsert it;
     b. otherwise, if the user recorded this lid on a contact that still has
        no wid (orphan), promote that row by writing the wid into it;
     c. otherwise insert a new row keyed by wid.
  2. Only lid known: reuse the contact the user's overlay links to that lid
     and refresh its fields in place.
  3. Neither found: insert a new contact with wid = NULL.

A lid is per user: two users may map the same external entity to two
different contacts. That is accepted, not deduplicated.

The caller owns the transaction.
"""

from __future__ import annotations

import psycopg2
from psycopg2.extensions import cursor as PgCursor

from zapsync.domain.models import ContactIdentity
from zapsync.infra.repositories import contacts_repository as repo


class IdentityResolutionError(Exception):
    """Raised when the store fails while locating or creating a contact."""

    pass


def resolve_contact_id(
    cur: PgCursor,
    *,
    user_id: str,
    contact: ContactIdentity,
    lid: str | None = None,
) -> int:
    """Locate or create the canonical contact for an observation.

    Args:
        cur:     Database cursor (must be inside a transaction).
        user_id: Calling user; scopes the lid lookup.
        contact: Canonical attributes observed.
        lid:     Secondary identifier observed for this user, if any.

    Returns:
        contacts.id of the resolved row.

    Raises:
        IdentityResolutionError: On any store error.
    """
    try:
        if contact.wid:
            if repo.find_contact_id_by_wid(cur, contact.wid) is None and lid:
                orphan_id = repo.find_contact_id_by_lid(
                    cur, user_id=user_id, lid=lid, orphan_only=True
                )
                if orphan_id is not None:
                    repo.update_contact(cur, contact_id=orphan_id, contact=contact)
                    return orphan_id
            return repo.upsert_contact_by_wid(cur, contact)

        if lid:
            contact_id = repo.find_contact_id_by_lid(cur, user_id=user_id, lid=lid)
            if contact_id is not None:
                repo.update_contact(cur, contact_id=contact_id, contact=contact)
                return contact_id

        return repo.insert_contact(cur, contact)
    except psycopg2.Error as e:
        raise IdentityResolutionError(f"contact resolution failed: {type(e).__name__}") from e
