"""Synchronization engine - idempotent writes of contact observations.

Single item: one transaction resolves the contact, upserts the user's
overlay and, when present, the message snapshot.

Batch: addressable observations (with a wid or a lid) are split into
chunks of ``SyncPolicy.chunk_size``; each chunk is one transaction. A
failing chunk counts all of its items as failed and is not retried; the
following chunks still run. Non-addressable observations are skipped and
counted apart, so ``saved + failed == len(items) - skipped`` always holds.
"""

from __future__ import annotations

import time
from typing import Callable, Iterator, Sequence

import psycopg2
from psycopg2.extensions import cursor as PgCursor

from zapsync.domain.identity import IdentityResolutionError, resolve_contact_id
from zapsync.domain.models import BatchResult, ContactObservation, SessionContext
from zapsync.infra.db import Store, StoreNotConfiguredError
from zapsync.infra.repositories.contacts_repository import (
    upsert_contact_message,
    upsert_contact_user,
)
from zapsync.infra.settings import SyncPolicy
from zapsync.observability.logging import get_logger
from zapsync.observability.redaction import identifier_hash

logger = get_logger(__name__)

_STORE_ERRORS = (psycopg2.Error, IdentityResolutionError, StoreNotConfiguredError)


def chunked(items: Sequence[ContactObservation], size: int) -> Iterator[Sequence[ContactObservation]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def apply_observation(cur: PgCursor, ctx: SessionContext, observation: ContactObservation) -> int:
    """Write one observation inside the caller's transaction.

    Returns:
        contacts.id the observation resolved to.
    """
    contact_id = resolve_contact_id(
        cur,
        user_id=ctx.user_id,
        contact=observation.contact,
        lid=observation.overlay.lid,
    )
    upsert_contact_user(cur, contact_id=contact_id, user_id=ctx.user_id, overlay=observation.overlay)
    if observation.last_message is not None:
        upsert_contact_message(
            cur,
            contact_id=contact_id,
            user_id=ctx.user_id,
            message=observation.last_message,
        )
    return contact_id


class SyncEngine:
    def __init__(
        self,
        store: Store,
        policy: SyncPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._policy = policy or SyncPolicy()
        self._sleep = sleep

    def save(self, ctx: SessionContext, observation: ContactObservation) -> int | None:
        """Write one observation in its own transaction.

        Unlike batches, an observation without wid or lid is written too
        (as a contact with wid = NULL).

        Returns:
            contacts.id on success, None on failure (logged, not raised).
        """
        try:
            with self._store.txn() as cur:
                return apply_observation(cur, ctx, observation)
        except _STORE_ERRORS as e:
            logger.warning(
                "contact sync failed",
                extra={
                    "extra_fields": {
                        "wid_hash": identifier_hash(observation.contact.wid),
                        "error_type": type(e).__name__,
                    }
                },
            )
            return None

    def sync_one(self, ctx: SessionContext, observation: ContactObservation) -> bool:
        return self.save(ctx, observation) is not None

    def sync_batch(self, ctx: SessionContext, observations: Sequence[ContactObservation]) -> BatchResult:
        addressable = [o for o in observations if o.is_addressable]
        skipped = len(observations) - len(addressable)
        saved = 0
        failed = 0
        pause_every = self._policy.pause_every

        for chunk_no, chunk in enumerate(chunked(addressable, self._policy.chunk_size)):
            processed_before = saved + failed
            try:
                with self._store.txn() as cur:
                    for observation in chunk:
                        apply_observation(cur, ctx, observation)
                saved += len(chunk)
            except _STORE_ERRORS as e:
                failed += len(chunk)
                logger.warning(
                    "contact chunk failed",
                    extra={
                        "extra_fields": {
                            "chunk": chunk_no,
                            "size": len(chunk),
                            "error_type": type(e).__name__,
                        }
                    },
                )

            processed = saved + failed
            if processed // pause_every > processed_before // pause_every:
                logger.info(
                    "sync progress",
                    extra={"extra_fields": {"processed": processed, "total": len(addressable)}},
                )
                self._sleep(self._policy.pause_seconds)

        if skipped:
            logger.info("contacts without identifier skipped", extra={"extra_fields": {"skipped": skipped}})

        return BatchResult(saved=saved, failed=failed, skipped=skipped)
