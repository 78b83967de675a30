"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI, Request, Response

from zapsync.infra.db import Store
from zapsync.infra.settings import load_settings
from zapsync.observability.correlation import (
    CORRELATION_ID_HEADER,
    accept_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)
from zapsync.services.contacts_service import ContactsService
from zapsync.whatsapp.wppconnect import WppConnectClient

from .routers import public
from .routes import contacts


def build_service() -> ContactsService:
    """Wire the service from environment settings."""
    settings = load_settings()
    return ContactsService(
        Store.from_settings(settings),
        WppConnectClient(settings.wpp),
        settings.sync,
    )


def create_app(service: ContactsService | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        service: Explicit service (tests). Built from the environment when None.
    """
    app = FastAPI(
        title="zapsync",
        docs_url=None,
        redoc_url=None,
    )
    app.state.contacts_service = service or build_service()

    @app.middleware("http")
    async def correlation_id_middleware(request: Request, call_next) -> Response:
        cid = accept_correlation_id(request.headers.get(CORRELATION_ID_HEADER))
        token = set_correlation_id(cid)
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = cid
            return response
        finally:
            reset_correlation_id(token)

    app.include_router(public.router)
    app.include_router(contacts.router)

    return app
