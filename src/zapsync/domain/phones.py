"""Phone number and WhatsApp identifier helpers.

WhatsApp identifiers (JIDs) look like ``<user>@<server>``:
- ``5551999999999@c.us``  → contact addressed by phone (primary identifier, wid)
- ``120363000000000@g.us`` → group
- ``123456789012345@lid`` → linked identity (secondary identifier, lid)

Brazilian mobile numbers gained a ninth digit; WhatsApp still reports many
of them in the 8-digit subscriber form. ``format_phone_br`` derives the
11-digit national mobile form used for matching.
"""

from __future__ import annotations

import re
from typing import Iterable

BR_COUNTRY_CODE = "55"

CONTACT_SERVER = "c.us"
GROUP_SERVER = "g.us"
LID_SERVER = "lid"

# Pseudo contacts exposed by the WhatsApp client, never synced
IGNORED_JIDS = frozenset({"0@c.us", "status@c.us"})

_NON_DIGITS = re.compile(r"\D")
_MOBILE_FIRST_DIGIT = re.compile(r"^[6-9]")


def digits_only(value: str | None) -> str:
    """Strip everything but digits ("+55 51 99999-9999" → "5551999999999")."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)


def format_phone_br(phone: str | None) -> str | None:
    """Return the Brazilian mobile form of a phone number.

    The leading country code is stripped; a 10-digit national number whose
    8-digit subscriber part starts with 6-9 gets a ``9`` inserted after the
    area code. 10 and 11 digit national numbers come back prefixed with the
    country code; anything else is returned unchanged.

    Examples:
        >>> format_phone_br("555188887777")
        '5551988887777'
        >>> format_phone_br("5551988887777")
        '5551988887777'
        >>> format_phone_br("555133334444")
        '555133334444'
    """
    if not phone or len(phone) < 10:
        return phone

    national = phone[len(BR_COUNTRY_CODE):] if phone.startswith(BR_COUNTRY_CODE) else phone

    if len(national) in (10, 11):
        area_code = national[:2]
        subscriber = national[2:]
        if len(subscriber) == 8 and _MOBILE_FIRST_DIGIT.match(subscriber):
            return f"{BR_COUNTRY_CODE}{area_code}9{subscriber}"
        return f"{BR_COUNTRY_CODE}{national}"

    return phone


def strip_ninth_digit(phone: str) -> str:
    """Return the legacy 12-digit form of a 13-digit Brazilian mobile number."""
    if phone.startswith(BR_COUNTRY_CODE) and len(phone) == 13:
        return phone[:4] + phone[5:]
    return phone


def jid_user(jid: str | None) -> str:
    """User part of a JID ("5551999999999@c.us" → "5551999999999")."""
    if not jid:
        return ""
    return jid.split("@", 1)[0]


def jid_server(jid: str | None) -> str:
    if not jid or "@" not in jid:
        return ""
    return jid.split("@", 1)[1]


def is_group_jid(jid: str) -> bool:
    return jid_server(jid) == GROUP_SERVER


def is_contact_jid(jid: str) -> bool:
    return jid_server(jid) == CONTACT_SERVER


def is_lid(jid: str | None) -> bool:
    return jid_server(jid) == LID_SERVER


def unique_identifiers(values: Iterable[str | None]) -> tuple[str, ...]:
    """Drop empty values and duplicates, keeping first-seen order."""
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)
