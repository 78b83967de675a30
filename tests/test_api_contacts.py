"""Tests for the contacts HTTP routes (service mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from zapsync.api.factory import create_app
from zapsync.domain.models import (
    ContactRecord,
    ContactStats,
    LookupResult,
    ScanOptions,
    ServiceResult,
    SyncSummary,
)
from zapsync.observability.correlation import CORRELATION_ID_HEADER
from zapsync.services.contacts_service import STORE_UNAVAILABLE, UNAUTHORIZED

RECORD = ContactRecord(
    contact_id=3,
    wid="5551988887777@c.us",
    name="Ana",
    phone="5551988887777",
    phone_br="5551988887777",
    there_is=True,
    link=("5551988887777@c.us",),
)


@pytest.fixture
def service():
    return MagicMock()


@pytest.fixture
def api(service):
    return TestClient(create_app(service=service))


def test_health(api, service):
    service.readiness.return_value = {"store": False, "bridge": True}
    response = api.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "store": False, "bridge": True}


def test_correlation_id_echoed(api, service):
    service.readiness.return_value = {}
    response = api.get("/health", headers={CORRELATION_ID_HEADER: "abc-123"})
    assert response.headers[CORRELATION_ID_HEADER] == "abc-123"


class TestList:
    def test_ok(self, api, service):
        service.list_contacts.return_value = ServiceResult(value=[RECORD])
        response = api.get("/contacts")
        assert response.status_code == 200
        body = response.json()
        assert body[0]["id"] == 3
        assert body[0]["phoneBR"] == "5551988887777"
        service.list_contacts.assert_called_once_with(deleted=False)

    def test_deleted(self, api, service):
        service.list_contacts.return_value = ServiceResult(value=[])
        assert api.get("/contacts?deleted=true").status_code == 200
        service.list_contacts.assert_called_once_with(deleted=True)

    def test_denied(self, api, service):
        service.list_contacts.return_value = ServiceResult.denied()
        assert api.get("/contacts").status_code == 403

    def test_store_failure(self, api, service):
        service.list_contacts.return_value = ServiceResult.failure(STORE_UNAVAILABLE)
        response = api.get("/contacts")
        assert response.status_code == 503
        assert response.json()["detail"] == STORE_UNAVAILABLE


class TestStats:
    def test_ok(self, api, service):
        service.stats.return_value = ServiceResult(value=ContactStats(user_id="user-1", active_contacts=4))
        response = api.get("/contacts/stats")
        assert response.status_code == 200
        assert response.json()["active_contacts"] == 4

    def test_denied(self, api, service):
        service.stats.return_value = ServiceResult.denied()
        assert api.get("/contacts/stats").status_code == 403

    def test_store_failure(self, api, service):
        service.stats.return_value = ServiceResult.failure(STORE_UNAVAILABLE)
        assert api.get("/contacts/stats").status_code == 503


class TestLookup:
    def test_found(self, api, service):
        service.check_number.return_value = LookupResult(there_is=True, data=RECORD)
        response = api.get("/contacts/lookup/5551988887777")
        assert response.status_code == 200
        assert response.json()["there_is"] is True
        assert response.json()["data"]["wid"] == "5551988887777@c.us"

    def test_denied(self, api, service):
        service.check_number.return_value = LookupResult.denied()
        assert api.get("/contacts/lookup/5551988887777").status_code == 403

    def test_failure(self, api, service):
        service.check_number.return_value = LookupResult.failure("store not configured")
        response = api.get("/contacts/lookup/5551988887777")
        assert response.status_code == 503
        assert response.json()["detail"] == "store not configured"


class TestSync:
    def test_defaults(self, api, service):
        service.sync_all_contacts.return_value = SyncSummary(success=True, total=2, saved=2)
        response = api.post("/contacts/sync")
        assert response.status_code == 200
        assert response.json()["saved"] == 2
        service.sync_all_contacts.assert_called_once_with(ScanOptions())

    def test_options(self, api, service):
        service.sync_all_contacts.return_value = SyncSummary(success=True)
        api.post("/contacts/sync", json={"include_groups": True, "limit": 10})
        options = service.sync_all_contacts.call_args[0][0]
        assert options.include_groups is True
        assert options.limit == 10

    @pytest.mark.parametrize("body", [{"limit": 0}, {"unknown": True}])
    def test_invalid_body(self, api, body):
        assert api.post("/contacts/sync", json=body).status_code == 422

    def test_denied(self, api, service):
        service.sync_all_contacts.return_value = SyncSummary.failure(UNAUTHORIZED)
        assert api.post("/contacts/sync").status_code == 403

    def test_not_ready_is_reported(self, api, service):
        service.sync_all_contacts.return_value = SyncSummary.failure("WhatsApp connection not ready")
        response = api.post("/contacts/sync")
        assert response.status_code == 200
        assert response.json() == {"success": False, "error": "WhatsApp connection not ready"}


class TestSoftDelete:
    def test_delete(self, api, service):
        service.set_deleted.return_value = ServiceResult(value=True)
        response = api.delete("/contacts/5")
        assert response.status_code == 200
        assert response.json() == {"id": 5, "deleted": True}
        service.set_deleted.assert_called_once_with(5, deleted=True)

    def test_restore(self, api, service):
        service.set_deleted.return_value = ServiceResult(value=True)
        assert api.post("/contacts/5/restore").json() == {"id": 5, "deleted": False}

    def test_not_found(self, api, service):
        service.set_deleted.return_value = ServiceResult(value=False)
        assert api.delete("/contacts/5").status_code == 404

    def test_denied(self, api, service):
        service.set_deleted.return_value = ServiceResult.denied()
        assert api.post("/contacts/5/restore").status_code == 403

    def test_store_failure(self, api, service):
        service.set_deleted.return_value = ServiceResult.failure(STORE_UNAVAILABLE)
        assert api.delete("/contacts/5").status_code == 503

    def test_invalid_id(self, api):
        assert api.delete("/contacts/0").status_code == 422
