"""Contacts endpoints.

GET    /contacts?deleted=false           → list active (or soft-deleted) contacts
GET    /contacts/stats                   → per-user counters
GET    /contacts/lookup/{identifier}     → read-through lookup
POST   /contacts/sync                    → full scan + batch sync
DELETE /contacts/{contact_id}            → soft delete
POST   /contacts/{contact_id}/restore    → undo soft delete

The caller is the local WhatsApp session: every call is authorized by
matching the session's own number to an active user (403 otherwise).
Store failures on management routes answer 503.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Path, Request
from pydantic import BaseModel, ConfigDict, Field

from zapsync.domain.models import ScanOptions, ServiceResult
from zapsync.services.contacts_service import UNAUTHORIZED, ContactsService

router = APIRouter(prefix="/contacts", tags=["contacts"])


# ── Schemas ───────────────────────────────────────────────────────────────────


class SyncRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_groups: bool = False
    include_unsaved: bool = False
    validate_server: bool = False
    include_last_message: bool = True
    include_labels: bool = True
    limit: int | None = Field(default=None, ge=1)

    def to_options(self) -> ScanOptions:
        return ScanOptions(**self.model_dump())


# ── Helpers ───────────────────────────────────────────────────────────────────


def get_contacts_service(request: Request) -> ContactsService:
    return request.app.state.contacts_service


def _forbidden() -> HTTPException:
    return HTTPException(status_code=403, detail="not authorized")


def _unwrap(result: ServiceResult):
    """Value of a management result; denial is 403, store failure is 503."""
    if result.unauthorized:
        raise _forbidden()
    if result.error:
        raise HTTPException(status_code=503, detail=result.error)
    return result.value


# ── Routes ────────────────────────────────────────────────────────────────────


@router.get("")
def list_contacts(
    deleted: bool = False,
    service: ContactsService = Depends(get_contacts_service),
) -> list[dict]:
    records = _unwrap(service.list_contacts(deleted=deleted))
    return [record.to_dict() for record in records]


@router.get("/stats")
def contact_stats(service: ContactsService = Depends(get_contacts_service)) -> dict:
    return _unwrap(service.stats()).to_dict()


@router.get("/lookup/{identifier}")
def lookup_contact(
    identifier: str = Path(..., min_length=1, description="Phone number or WhatsApp id"),
    service: ContactsService = Depends(get_contacts_service),
) -> dict:
    """Serve a contact from storage, falling back to the live session."""
    result = service.check_number(identifier)
    if result.unauthorized:
        raise _forbidden()
    if result.error:
        raise HTTPException(status_code=503, detail=result.error)
    return result.to_dict()


@router.post("/sync")
def sync_contacts(
    body: SyncRequest | None = None,
    service: ContactsService = Depends(get_contacts_service),
) -> dict:
    """Run a full contact sync. Partial failure is reported in the summary."""
    summary = service.sync_all_contacts((body or SyncRequest()).to_options())
    if summary.error == UNAUTHORIZED:
        raise _forbidden()
    return summary.to_dict()


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: int = Path(..., ge=1),
    service: ContactsService = Depends(get_contacts_service),
) -> dict:
    if not _unwrap(service.set_deleted(contact_id, deleted=True)):
        raise HTTPException(status_code=404, detail="Contact not found")
    return {"id": contact_id, "deleted": True}


@router.post("/{contact_id}/restore")
def restore_contact(
    contact_id: int = Path(..., ge=1),
    service: ContactsService = Depends(get_contacts_service),
) -> dict:
    if not _unwrap(service.set_deleted(contact_id, deleted=False)):
        raise HTTPException(status_code=404, detail="Contact not found")
    return {"id": contact_id, "deleted": False}
