"""Read-through contact lookup.

Storage first: a contact whose link array holds the identifier (or its
bare number) answers immediately, without calling the live client. On a
miss the live client is queried, the answer is resolved and written
through the sync engine, and the stored row is read back so hits and
misses return the same record shape.
"""

from __future__ import annotations

import psycopg2

from zapsync.domain.enrichment import build_lookup_observation
from zapsync.domain.models import ContactRecord, LookupResult, SessionContext
from zapsync.domain.phones import jid_user, unique_identifiers
from zapsync.domain.sync import SyncEngine
from zapsync.infra.db import Store, StoreNotConfiguredError
from zapsync.infra.repositories.contacts_repository import (
    find_contact_by_link,
    get_contact_record,
)
from zapsync.observability.logging import get_logger
from zapsync.observability.redaction import identifier_hash
from zapsync.whatsapp.client import WhatsAppClient, WhatsAppClientError

logger = get_logger(__name__)


def lookup_keys(identifier: str) -> tuple[str, ...]:
    """Identifier forms searched in link: as given, then its bare number."""
    return unique_identifiers((identifier, jid_user(identifier)))


class ContactLookup:
    def __init__(self, store: Store, client: WhatsAppClient, engine: SyncEngine) -> None:
        self._store = store
        self._client = client
        self._engine = engine

    def cached(self, ctx: SessionContext, identifier: str) -> ContactRecord | None:
        try:
            with self._store.txn() as cur:
                return find_contact_by_link(
                    cur, user_id=ctx.user_id, identifiers=lookup_keys(identifier)
                )
        except (psycopg2.Error, StoreNotConfiguredError) as e:
            logger.warning(
                "contact cache read failed, falling back to live lookup",
                extra={"extra_fields": {"error_type": type(e).__name__}},
            )
            return None

    def lookup(self, ctx: SessionContext, identifier: str) -> LookupResult:
        """Return the contact for an identifier.

        Raises:
            WhatsAppClientError: If the live "exists" query fails on a miss.
        """
        record = self.cached(ctx, identifier)
        if record is not None:
            logger.info(
                "contact lookup served from storage",
                extra={"extra_fields": {"identifier_hash": identifier_hash(identifier)}},
            )
            return LookupResult(there_is=record.there_is, data=record)

        exists = self._client.query_exists(identifier)
        entry = None
        if exists is not None and (exists.wid or exists.lid):
            try:
                entry = self._client.get_pn_lid_entry(exists.wid or exists.lid)
            except WhatsAppClientError:
                logger.warning(
                    "pn/lid entry unavailable, writing partial contact",
                    extra={"extra_fields": {"identifier_hash": identifier_hash(identifier)}},
                )

        observation = build_lookup_observation(identifier, exists, entry)
        contact_id = self._engine.save(ctx, observation)

        record = None
        if contact_id is not None:
            try:
                with self._store.txn() as cur:
                    record = get_contact_record(cur, contact_id=contact_id, user_id=ctx.user_id)
            except (psycopg2.Error, StoreNotConfiguredError) as e:
                logger.warning(
                    "contact read-back failed",
                    extra={"extra_fields": {"error_type": type(e).__name__}},
                )
        if record is None:
            record = ContactRecord.from_observation(observation)

        logger.info(
            "contact lookup resolved live",
            extra={
                "extra_fields": {
                    "identifier_hash": identifier_hash(identifier),
                    "there_is": observation.contact.there_is,
                    "stored": contact_id is not None,
                }
            },
        )
        return LookupResult(there_is=observation.contact.there_is, data=record)
