"""Unauthenticated routes."""

from fastapi import APIRouter, Depends

from zapsync.services.contacts_service import ContactsService

from ..routes.contacts import get_contacts_service

router = APIRouter()


@router.get("/health")
def health(service: ContactsService = Depends(get_contacts_service)) -> dict:
    """Liveness plus whether the store and the WhatsApp bridge are configured.

    Always 200: a process missing DATABASE_URL still answers so the operator
    can see which side is absent.
    """
    return {"status": "ok", **service.readiness()}
