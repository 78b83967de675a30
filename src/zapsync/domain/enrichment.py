"""Enrichment pipeline - live client data to writable contact observations.

Bulk scan phases
────────────────
  1. Classify contact models: groups (@g.us), contacts (@c.us) and linked
     identities (@lid). Pseudo contacts (0@c.us, status@c.us) are dropped.
  2. Enrich each contact with its pn/lid entry: the lid is appended to the
     contact's link and set on the overlay; labels carried by the lid model
     are merged (deduplicated by id); a name found through the lid fills an
     empty overlay name.
  3. Promote remaining lids: a lid whose entry resolves to a phone that no
     scanned contact uses becomes a new contact of its own.
  4. Truncate to the requested limit.

Failures of the live client while fetching labels, chats, messages or
pn/lid entries only degrade enrichment (no labels, no message, no lid);
failing to enumerate contact models fails the scan.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Callable, Iterable

from zapsync.domain.models import (
    ContactIdentity,
    ContactObservation,
    ContactOverlay,
    Label,
    MessageSnapshot,
    ScanOptions,
)
from zapsync.domain.phones import (
    IGNORED_JIDS,
    format_phone_br,
    is_contact_jid,
    is_group_jid,
    is_lid,
    jid_user,
    strip_ninth_digit,
    unique_identifiers,
)
from zapsync.infra.settings import SyncPolicy
from zapsync.observability.logging import get_logger
from zapsync.observability.redaction import identifier_hash
from zapsync.whatsapp.client import (
    ChatMessage,
    ChatSummary,
    ContactModel,
    ExistsResult,
    PnLidEntry,
    WhatsAppClient,
    WhatsAppClientError,
)

logger = get_logger(__name__)

# Message types whose body is plain text; other bodies (media payloads) are dropped
TEXT_MESSAGE_TYPES = frozenset({"chat"})


class LabelDirectory:
    """Label id → Label lookup built from the client's label list.

    An unavailable directory resolves every contact's labels to None so the
    stored labels are left alone.
    """

    def __init__(self, labels: Iterable[Label] | None) -> None:
        self.available = labels is not None
        self._labels = {label.id: label for label in labels or ()}

    @classmethod
    def unavailable(cls) -> "LabelDirectory":
        return cls(None)

    @classmethod
    def from_client(cls, client: WhatsAppClient) -> "LabelDirectory":
        try:
            infos = client.list_labels()
        except WhatsAppClientError:
            logger.warning("label directory unavailable, keeping stored labels")
            return cls.unavailable()
        logger.info("labels fetched", extra={"extra_fields": {"count": len(infos)}})
        return cls(Label(id=info.id, name=info.name, color=info.color) for info in infos)

    def resolve(self, label_ids: Iterable[str]) -> tuple[Label, ...] | None:
        if not self.available:
            return None
        return tuple(self._labels[i] for i in label_ids if i in self._labels)


def merge_labels(
    existing: tuple[Label, ...] | None,
    extra: tuple[Label, ...] | None,
) -> tuple[Label, ...] | None:
    """Append labels from `extra` whose id is not in `existing`."""
    if extra is None:
        return existing
    if existing is None:
        existing = ()
    known = {label.id for label in existing}
    merged = list(existing)
    for label in extra:
        if label.id not in known:
            merged.append(label)
            known.add(label.id)
    return tuple(merged)


def message_snapshot(chat: ChatSummary, message: ChatMessage) -> MessageSnapshot:
    message_type = message.type or "chat"
    return MessageSnapshot(
        message_id=message.id,
        chat_id=chat.id,
        body=(message.body or "") if message_type in TEXT_MESSAGE_TYPES else None,
        type=message_type,
        timestamp_ms=message.timestamp,
        ack=message.ack,
        is_forwarded=message.is_forwarded,
        unread_count=chat.unread_count,
        has_unread=chat.unread_count > 0,
        exists_flag=True,
    )


def with_lid(
    observation: ContactObservation,
    lid: str,
    *,
    labels: tuple[Label, ...] | None = None,
    discovered_name: str | None = None,
) -> ContactObservation:
    """Attach a secondary identifier discovered for a contact.

    The lid joins the contact's link (once), is set on the overlay, extra
    labels are merged by id, and `discovered_name` fills an empty overlay
    name on both the overlay and the contact.
    """
    contact = observation.contact
    overlay = observation.overlay

    contact = replace(contact, link=unique_identifiers((*contact.link, lid)))
    overlay = replace(overlay, lid=lid, labels=merge_labels(overlay.labels, labels))

    if discovered_name and not overlay.name:
        overlay = replace(overlay, name=discovered_name)
        contact = replace(contact, name=discovered_name)

    return replace(observation, contact=contact, overlay=overlay)


def overlay_from_model(
    model: ContactModel | None,
    *,
    lid: str | None = None,
    labels: tuple[Label, ...] | None = None,
) -> ContactOverlay:
    if model is None:
        return ContactOverlay(lid=lid, labels=labels)
    has_name = bool(model.name)
    return ContactOverlay(
        lid=lid,
        name=model.name,
        pushname=model.pushname,
        short_name=model.short_name,
        verified_name=model.verified_name,
        type="in" if has_name else "out",
        is_business=model.is_business,
        is_enterprise=model.is_enterprise,
        is_contact_sync_completed=bool(model.is_contact_sync_completed),
        sync_to_addressbook=model.is_address_book_contact,
        is_group=False,
        labels=labels,
    )


def build_lookup_observation(
    identifier: str,
    exists: ExistsResult | None,
    entry: PnLidEntry | None,
) -> ContactObservation:
    """Turn a live "does it exist" answer into an observation to write through.

    Unknown numbers are still recorded (there_is = False) with both the
    12-digit and the 13-digit Brazilian forms in link, so the negative
    answer is served from storage next time.
    """
    if exists is None:
        number = jid_user(identifier)
        phone = strip_ninth_digit(number)
        phone_br = format_phone_br(number)
        return ContactObservation(
            contact=ContactIdentity(
                wid=None,
                name=None,
                phone=phone,
                phone_br=phone_br,
                there_is=False,
                link=unique_identifiers((phone, phone_br)),
            ),
        )

    wid = exists.wid
    lid = exists.lid
    phone = exists.phone or (jid_user(wid) if wid else None)

    if not wid and entry is not None and entry.phone_number:
        wid = entry.phone_number
        phone = entry.phone or jid_user(entry.phone_number)

    if not wid and lid and not phone:
        phone = jid_user(identifier)

    if not lid and entry is not None and entry.lid:
        lid = entry.lid

    phone_br = format_phone_br(phone)
    contact_model = entry.contact if entry is not None else None
    name = exists.name or (contact_model.name if contact_model else None)

    return ContactObservation(
        contact=ContactIdentity(
            wid=wid,
            name=name,
            phone=phone,
            phone_br=phone_br,
            there_is=True,
            link=unique_identifiers((wid, phone, phone_br, lid)),
        ),
        overlay=overlay_from_model(contact_model, lid=lid),
    )


class ContactScanner:
    """Builds contact observations from a full pass over the live client."""

    def __init__(
        self,
        client: WhatsAppClient,
        policy: SyncPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._policy = policy or SyncPolicy()
        self._sleep = sleep

    def _pause(self, processed: int) -> None:
        if processed and processed % self._policy.pause_every == 0:
            self._sleep(self._policy.pause_seconds)

    def _chat_messages(self, options: ScanOptions) -> dict[str, MessageSnapshot | None]:
        try:
            chats = self._client.list_chats()
        except WhatsAppClientError:
            logger.warning("chat list unavailable, scanning without messages")
            return {}

        snapshots: dict[str, MessageSnapshot | None] = {}
        for chat in chats:
            snapshot = None
            if options.include_last_message and chat.has_last_received:
                try:
                    messages = self._client.get_messages(chat.id, count=1)
                    if messages:
                        snapshot = message_snapshot(chat, messages[0])
                except WhatsAppClientError:
                    logger.warning(
                        "last message unavailable",
                        extra={"extra_fields": {"chat_hash": identifier_hash(chat.id)}},
                    )
            snapshots[chat.id] = snapshot
        return snapshots

    def scan(self, options: ScanOptions | None = None) -> list[ContactObservation]:
        """Enumerate, classify and enrich every contact the client knows.

        Raises:
            WhatsAppClientError: If contact models cannot be enumerated.
        """
        options = options or ScanOptions()

        directory = (
            LabelDirectory.from_client(self._client)
            if options.include_labels
            else LabelDirectory.unavailable()
        )
        chats = self._chat_messages(options)
        models = self._client.list_contact_models()
        logger.info("scanning contacts", extra={"extra_fields": {"models": len(models)}})

        contacts, lid_models = self._classify(models, options, directory, chats)
        logger.info(
            "contacts classified",
            extra={"extra_fields": {"contacts": len(contacts), "lids": len(lid_models)}},
        )

        enriched = self._enrich(contacts, lid_models, options, directory)
        logger.info("contacts enriched with lid", extra={"extra_fields": {"enriched": enriched}})

        promoted = self._promote(contacts, lid_models, directory, chats)
        logger.info("lids promoted to contacts", extra={"extra_fields": {"promoted": promoted}})

        results = list(contacts.values())
        if options.limit:
            results = results[: options.limit]
        return results

    # ── Phase 1 ──────────────────────────────────────────────────────────────

    def _classify(
        self,
        models: list[ContactModel],
        options: ScanOptions,
        directory: LabelDirectory,
        chats: dict[str, MessageSnapshot | None],
    ) -> tuple[dict[str, ContactObservation], dict[str, ContactModel]]:
        contacts: dict[str, ContactObservation] = {}
        lid_models: dict[str, ContactModel] = {}

        for model in models:
            jid = model.id
            if not jid or jid in IGNORED_JIDS:
                continue

            if is_group_jid(jid):
                if options.include_groups:
                    contacts[jid] = self._group_observation(model, directory, chats)
                continue

            if is_contact_jid(jid):
                if not model.name and not options.include_unsaved:
                    continue
                number = model.user or jid_user(jid)
                contacts[number] = self._contact_observation(model, number, directory, chats)
                continue

            if is_lid(jid):
                lid_models[jid] = model

        return contacts, lid_models

    @staticmethod
    def _group_observation(
        model: ContactModel,
        directory: LabelDirectory,
        chats: dict[str, MessageSnapshot | None],
    ) -> ContactObservation:
        number = jid_user(model.id)
        name = model.name or model.pushname or number
        return ContactObservation(
            contact=ContactIdentity(
                wid=model.id,
                name=name,
                phone=number,
                phone_br=number,
                there_is=True,
                link=unique_identifiers((model.id, number)),
            ),
            overlay=ContactOverlay(
                name=name,
                pushname=model.pushname,
                short_name=model.short_name,
                type="group",
                is_business=False,
                is_enterprise=False,
                is_contact_sync_completed=bool(model.is_contact_sync_completed),
                sync_to_addressbook=False,
                is_group=True,
                labels=directory.resolve(model.labels),
            ),
            last_message=chats.get(model.id),
        )

    @staticmethod
    def _contact_observation(
        model: ContactModel,
        number: str,
        directory: LabelDirectory,
        chats: dict[str, MessageSnapshot | None],
    ) -> ContactObservation:
        phone_br = format_phone_br(number)
        return ContactObservation(
            contact=ContactIdentity(
                wid=model.id,
                name=model.name or model.pushname or number,
                phone=number,
                phone_br=phone_br,
                there_is=True,
                link=unique_identifiers((model.id, number, phone_br)),
            ),
            overlay=overlay_from_model(model, labels=directory.resolve(model.labels)),
            last_message=chats.get(model.id),
        )

    # ── Phase 2 ──────────────────────────────────────────────────────────────

    def _enrich(
        self,
        contacts: dict[str, ContactObservation],
        lid_models: dict[str, ContactModel],
        options: ScanOptions,
        directory: LabelDirectory,
    ) -> int:
        enriched = 0
        processed = 0
        for number, observation in list(contacts.items()):
            if observation.overlay.is_group:
                continue
            processed += 1
            wid = observation.contact.wid
            try:
                entry = self._client.get_pn_lid_entry(wid)
                if entry is not None and entry.lid:
                    lid_model = lid_models.pop(entry.lid, None)
                    observation = with_lid(
                        observation,
                        entry.lid,
                        labels=directory.resolve(lid_model.labels) if lid_model else None,
                        discovered_name=entry.contact.name if entry.contact else None,
                    )
                    enriched += 1

                if options.validate_server:
                    observation = replace(
                        observation,
                        contact=replace(observation.contact, there_is=self._exists(number)),
                    )
                contacts[number] = observation
            except WhatsAppClientError:
                logger.warning(
                    "lid enrichment failed",
                    extra={"extra_fields": {"wid_hash": identifier_hash(wid)}},
                )
            self._pause(processed)
        return enriched

    def _exists(self, number: str) -> bool:
        try:
            result = self._client.query_exists(number)
        except WhatsAppClientError:
            return False
        return result is not None and result.wid is not None

    # ── Phase 3 ──────────────────────────────────────────────────────────────

    def _promote(
        self,
        contacts: dict[str, ContactObservation],
        lid_models: dict[str, ContactModel],
        directory: LabelDirectory,
        chats: dict[str, MessageSnapshot | None],
    ) -> int:
        promoted = 0
        for processed, (lid, lid_model) in enumerate(lid_models.items(), start=1):
            try:
                entry = self._client.get_pn_lid_entry(lid)
            except WhatsAppClientError:
                logger.warning(
                    "lid resolution failed",
                    extra={"extra_fields": {"lid_hash": identifier_hash(lid)}},
                )
                entry = None

            if entry is not None and entry.phone_number:
                number = entry.phone or jid_user(entry.phone_number)
                if number not in contacts:
                    contacts[number] = self._promoted_observation(
                        lid, lid_model, entry, number, directory, chats
                    )
                    promoted += 1
            self._pause(processed)
        return promoted

    @staticmethod
    def _promoted_observation(
        lid: str,
        lid_model: ContactModel,
        entry: PnLidEntry,
        number: str,
        directory: LabelDirectory,
        chats: dict[str, MessageSnapshot | None],
    ) -> ContactObservation:
        phone_id = entry.phone_number
        entry_name = entry.contact.name if entry.contact else None
        overlay_name = entry_name or lid_model.name
        phone_br = format_phone_br(number)
        return ContactObservation(
            contact=ContactIdentity(
                wid=phone_id,
                name=entry_name or lid_model.name or lid_model.pushname or number,
                phone=number,
                phone_br=phone_br,
                there_is=True,
                link=unique_identifiers((phone_id, number, lid, phone_br)),
            ),
            overlay=ContactOverlay(
                lid=lid,
                name=overlay_name,
                pushname=lid_model.pushname,
                short_name=lid_model.short_name,
                verified_name=lid_model.verified_name,
                type="in" if overlay_name else "out",
                is_business=lid_model.is_business,
                is_enterprise=lid_model.is_enterprise,
                is_contact_sync_completed=bool(lid_model.is_contact_sync_completed),
                sync_to_addressbook=bool(overlay_name),
                is_group=False,
                labels=directory.resolve(lid_model.labels),
            ),
            last_message=chats.get(phone_id),
        )
