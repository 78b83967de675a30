"""HTTP adapter for a WPPConnect server session.

Implements the WhatsAppClient contract against the server's REST routes
(``/api/<session>/...``, bearer token). Payloads are normalized into the
frozen records of ``zapsync.whatsapp.client``.

Security: identifiers and phone numbers are never logged in clear.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar
from urllib.parse import quote

import requests

from zapsync.infra.settings import WppConfig
from zapsync.observability.logging import get_logger
from zapsync.observability.redaction import identifier_hash, safe_log_context

from .client import (
    ChatMessage,
    ChatSummary,
    ContactModel,
    ExistsResult,
    LabelInfo,
    PnLidEntry,
    WhatsAppClientError,
)

logger = get_logger(__name__)

T = TypeVar("T")


def serialized_id(value: Any) -> str | None:
    """Extract the serialized form of a WhatsApp id object or string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        serialized = value.get("_serialized")
        if serialized:
            return str(serialized)
        user, server = value.get("user"), value.get("server")
        if user and server:
            return f"{user}@{server}"
    return None


def id_user(value: Any) -> str | None:
    if isinstance(value, dict) and value.get("user"):
        return str(value["user"])
    serialized = serialized_id(value)
    return serialized.split("@", 1)[0] if serialized else None


def _opt_bool(value: Any) -> bool | None:
    return None if value is None else bool(value)


def parse_contact_model(data: dict[str, Any]) -> ContactModel | None:
    contact_id = serialized_id(data.get("id"))
    if not contact_id:
        return None
    return ContactModel(
        id=contact_id,
        user=id_user(data.get("id")),
        name=data.get("name") or None,
        pushname=data.get("pushname") or None,
        short_name=data.get("shortName") or None,
        verified_name=data.get("verifiedName") or None,
        is_business=_opt_bool(data.get("isBusiness")),
        is_enterprise=_opt_bool(data.get("isEnterprise")),
        is_contact_sync_completed=_opt_bool(data.get("isContactSyncCompleted")),
        is_address_book_contact=bool(data.get("isAddressBookContact")),
        labels=tuple(str(label) for label in data.get("labels") or ()),
    )


def parse_exists(data: dict[str, Any] | None) -> ExistsResult | None:
    if not data:
        return None
    if data.get("numberExists") is False:
        return None
    wid_value = data.get("wid") or data.get("id")
    wid = serialized_id(wid_value)
    lid = serialized_id(data.get("lid"))
    if not wid and not lid:
        return None
    return ExistsResult(
        wid=wid,
        lid=lid,
        name=data.get("name") or None,
        phone=id_user(wid_value) if wid else None,
    )


def parse_pn_lid_entry(data: dict[str, Any] | None) -> PnLidEntry | None:
    if not data:
        return None
    contact = data.get("contact")
    phone_number = data.get("phoneNumber")
    return PnLidEntry(
        lid=serialized_id(data.get("lid")),
        phone_number=serialized_id(phone_number),
        phone=id_user(phone_number),
        contact=parse_contact_model(contact) if isinstance(contact, dict) else None,
    )


def parse_chat(data: dict[str, Any]) -> ChatSummary | None:
    chat_id = serialized_id(data.get("id"))
    if not chat_id:
        return None
    return ChatSummary(
        id=chat_id,
        unread_count=int(data.get("unreadCount") or 0),
        has_last_received=bool(data.get("lastReceivedKey")),
    )


def parse_message(data: dict[str, Any]) -> ChatMessage | None:
    message_id = serialized_id(data.get("id"))
    if not message_id:
        return None
    timestamp = data.get("t") or data.get("timestamp")
    return ChatMessage(
        id=message_id,
        body=data.get("body"),
        type=data.get("type") or "chat",
        timestamp=int(timestamp) if timestamp is not None else None,
        ack=data.get("ack"),
        is_forwarded=bool(data.get("isForwarded")),
    )


def parse_label(data: dict[str, Any]) -> LabelInfo | None:
    label_id = data.get("id")
    if label_id is None:
        return None
    return LabelInfo(
        id=str(label_id),
        name=data.get("name"),
        color=data.get("hexColor") or data.get("color") or None,
    )


class WppConnectClient:
    """Blocking HTTP client for one WPPConnect server session."""

    def __init__(self, config: WppConfig, session: requests.Session | None = None) -> None:
        self._config = config
        self._http = session or requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self._config.base_url and self._config.session and self._config.token)

    def _url(self, path: str) -> str:
        base = (self._config.base_url or "").rstrip("/")
        return f"{base}/api/{quote(self._config.session or '', safe='')}/{path}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        if not self.is_configured:
            raise WhatsAppClientError("WPP_BASE_URL, WPP_SESSION and WPP_TOKEN are required")

        headers = {"Authorization": f"Bearer {self._config.token}"}
        try:
            response = self._http.request(
                method,
                self._url(path),
                headers=headers,
                timeout=self._config.timeout,
                **kwargs,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                "whatsapp bridge request failed",
                extra={
                    "extra_fields": safe_log_context(
                        route=path.split("/", 1)[0],
                        error_type=type(e).__name__,
                    )
                },
            )
            raise WhatsAppClientError(f"{method} {path.split('/', 1)[0]} failed") from e

        # Server wraps results as {"status": "success", "response": ...}
        if isinstance(payload, dict) and "response" in payload:
            return payload["response"]
        return payload

    def _parse(self, route: str, parser: Callable[[Any], T], payload: Any) -> T:
        """Normalize a payload; malformed fields raise WhatsAppClientError."""
        try:
            return parser(payload)
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(
                "whatsapp bridge payload rejected",
                extra={"extra_fields": {"route": route, "error_type": type(e).__name__}},
            )
            raise WhatsAppClientError(f"unexpected {route} payload") from e

    def _parse_list(self, route: str, parser: Callable[[dict[str, Any]], T | None], payload: Any) -> list[T]:
        def parse_all(items: Any) -> list[T]:
            parsed = (parser(item) for item in items or () if isinstance(item, dict))
            return [item for item in parsed if item is not None]

        return self._parse(route, parse_all, payload)

    def _get(self, path: str, **params: Any) -> Any:
        return self._request("GET", path, params=params or None)

    def _post(self, path: str, body: dict[str, Any] | None = None) -> Any:
        return self._request("POST", path, json=body or {})

    def is_ready(self) -> bool:
        payload = self._get("check-connection-session")
        if isinstance(payload, dict):
            return bool(payload.get("status"))
        return bool(payload)

    def get_my_user_id(self) -> str | None:
        return self._parse("get-phone-number", serialized_id, self._get("get-phone-number"))

    def query_exists(self, identifier: str) -> ExistsResult | None:
        payload = self._get(f"check-number-status/{quote(identifier, safe='@.')}")
        return self._parse(
            "check-number-status", parse_exists, payload if isinstance(payload, dict) else None
        )

    def get_pn_lid_entry(self, identifier: str) -> PnLidEntry | None:
        logger.debug(
            "fetching pn/lid entry",
            extra={"extra_fields": {"identifier_hash": identifier_hash(identifier)}},
        )
        payload = self._get(f"contact/pn-lid/{quote(identifier, safe='@.')}")
        return self._parse(
            "contact/pn-lid", parse_pn_lid_entry, payload if isinstance(payload, dict) else None
        )

    def list_chats(self) -> list[ChatSummary]:
        return self._parse_list("list-chats", parse_chat, self._post("list-chats"))

    def get_messages(self, chat_id: str, count: int = 1) -> list[ChatMessage]:
        payload = self._get(f"get-messages/{quote(chat_id, safe='@.')}", count=count)
        return self._parse_list("get-messages", parse_message, payload)

    def list_labels(self) -> list[LabelInfo]:
        return self._parse_list("get-all-labels", parse_label, self._get("get-all-labels"))

    def list_contact_models(self) -> list[ContactModel]:
        return self._parse_list("all-contacts", parse_contact_model, self._get("all-contacts"))
