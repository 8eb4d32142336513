from __future__ import annotations

import re
import uuid
from contextvars import ContextVar
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"

# what a client may pass in; anything else is replaced
_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

_request_id_ctx: ContextVar[str | None] = ContextVar("parkspace_request_id", default=None)


def generate_request_id() -> str:
    """Generate a random request id."""
    return uuid.uuid4().hex


def resolve_request_id(header_value: str | None) -> str:
    """Reuse the caller's X-Request-ID when it is a plain token, else mint a new one.

    The id ends up in every audit line, so oversized or free-form values
    (spaces, quotes, newlines) are not carried over.
    """
    if header_value and _CLIENT_ID_PATTERN.match(header_value):
        return header_value
    return generate_request_id()


def set_request_id(request_id: str | None) -> None:
    """Store request id in context (None to clear)."""
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    """Return current request id if set."""
    return _request_id_ctx.get()
