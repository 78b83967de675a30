"""Correlation IDs shared by HTTP requests and bulk sync runs.

A request gets its ID from the middleware; a sync started outside a
request (CLI, scheduler) opens its own run ID so every log line of the run
can be grouped.
"""

import re
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Inbound IDs end up in every log line
_ACCEPTED_ID = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)


def accept_correlation_id(header_value: str | None) -> str:
    """Keep a caller-supplied ID when it is short and printable, else mint one."""
    if header_value and _ACCEPTED_ID.fullmatch(header_value):
        return header_value
    return generate_correlation_id()


@contextmanager
def sync_run_scope() -> Iterator[str]:
    """Yield the ID a sync run logs under.

    Inside a request the request's ID is reused; otherwise a fresh run ID
    is set for the duration of the block.
    """
    current = correlation_id_var.get()
    if current:
        yield current
        return
    cid = generate_correlation_id()
    token = correlation_id_var.set(cid)
    try:
        yield cid
    finally:
        correlation_id_var.reset(token)
