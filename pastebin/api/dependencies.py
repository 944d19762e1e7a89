from __future__ import annotations

import logging

from flask import current_app, request

from pastebin.db import SessionLocal
from pastebin.domain.clock import Clock, fixed_clock, system_clock
from pastebin.observability import get_correlation_id
from pastebin.services.paste_service import PasteService


logger = logging.getLogger(__name__)

TEST_NOW_HEADER = "x-test-now-ms"


def get_request_clock() -> Clock:
    """
    Return the clock used to judge paste visibility for the current request.

    With ``TEST_MODE`` enabled, an ``x-test-now-ms`` header pins the current
    time to the given epoch milliseconds. Otherwise the wall clock is used.
    Creation times always come from the wall clock.
    """
    if not current_app.config.get("TEST_MODE", False):
        return system_clock

    raw = request.headers.get(TEST_NOW_HEADER)
    if not raw:
        return system_clock

    try:
        return fixed_clock(int(raw))
    except ValueError:
        logger.warning(
            "Ignoring malformed test clock header",
            extra={
                "event": "test_clock_header_invalid",
                "correlation_id": get_correlation_id(),
            },
        )
        return system_clock


def get_paste_service() -> PasteService:
    return PasteService(session_factory=SessionLocal, clock=get_request_clock())
