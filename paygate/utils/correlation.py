from __future__ import annotations

import uuid
import contextvars
from contextlib import contextmanager
from typing import Iterator

# Task-local correlation id for logging across one payment call
_cid = contextvars.ContextVar("correlation_id", default="")


def get_correlation_id() -> str:
    """Get current correlation id (empty string if not set)."""
    return _cid.get("")


@contextmanager
def correlation_scope(value: str | None = None) -> Iterator[str]:
    """Bind a correlation id for the block, restoring the previous one afterwards."""
    token = _cid.set(value or uuid.uuid4().hex)
    try:
        yield _cid.get()
    finally:
        _cid.reset(token)
