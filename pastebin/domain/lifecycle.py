from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from .errors import InvalidPasteParameters
from .models import PasteRecord


# Limits are stored in 32-bit integer columns.
MAX_LIMIT = 2_147_483_647


def expires_at_ms(paste: PasteRecord) -> Optional[int]:
    """Epoch milliseconds at which the paste stops being visible, if it has a TTL."""
    if paste.ttl_seconds is None:
        return None
    return paste.created_at + paste.ttl_seconds * 1000


def is_visible(paste: PasteRecord, now_ms: int) -> bool:
    """
    Decide whether a stored paste may still be served.

    - With a TTL the paste is gone once ``now_ms`` reaches its expiry instant;
      the instant itself already counts as expired.
    - With a view cap the paste is gone once ``views`` reaches ``max_views``.
      This runs against the pre-increment count, so ``max_views=1`` allows
      exactly one read.

    Both predicates are independent and a missing limit never hides a paste.
    """
    expiry = expires_at_ms(paste)
    if expiry is not None and now_ms >= expiry:
        return False

    if paste.max_views is not None and paste.views >= paste.max_views:
        return False

    return True


def format_timestamp_ms(epoch_ms: int) -> str:
    """Format epoch milliseconds as ISO-8601 UTC, e.g. ``2026-10-19T12:00:01.000Z``."""
    moment = datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=epoch_ms)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def compute_response(paste: PasteRecord) -> dict[str, Any]:
    """
    Build the read response for a paste whose ``views`` already includes
    the read being served.
    """
    expiry = expires_at_ms(paste)
    remaining_views = None
    if paste.max_views is not None:
        remaining_views = paste.max_views - paste.views

    return {
        "content": paste.content,
        "remaining_views": remaining_views,
        "expires_at": format_timestamp_ms(expiry) if expiry is not None else None,
    }


def _is_limit(value: object) -> bool:
    # bool is an int subclass but never a valid count.
    if not isinstance(value, int) or isinstance(value, bool):
        return False
    return 1 <= value <= MAX_LIMIT


def validate_create(
    content: object,
    ttl_seconds: object = None,
    max_views: object = None,
) -> None:
    """
    Check creation input, raising ``InvalidPasteParameters`` on the first
    violated rule:

    - ``content`` is a string that is non-empty once whitespace is trimmed
    - ``ttl_seconds``, if given, is an integer between 1 and ``MAX_LIMIT``
    - ``max_views``, if given, is an integer between 1 and ``MAX_LIMIT``
    """
    if not isinstance(content, str) or not content.strip():
        raise InvalidPasteParameters("content is required")

    if ttl_seconds is not None and not _is_limit(ttl_seconds):
        raise InvalidPasteParameters(f"ttl_seconds must be an integer between 1 and {MAX_LIMIT}")

    if max_views is not None and not _is_limit(max_views):
        raise InvalidPasteParameters(f"max_views must be an integer between 1 and {MAX_LIMIT}")
