from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from pastebin.db import Base
from pastebin.domain.clock import fixed_clock, system_clock
from pastebin.domain.errors import (
    InvalidPasteParameters,
    PasteNotFoundError,
    PasteStorageError,
)
from pastebin.domain.lifecycle import MAX_LIMIT
from pastebin.repositories.paste_repository import PasteRepository
from pastebin.services.paste_service import PasteService


T0 = 1_700_000_000_000

ServiceAt = Callable[[int], PasteService]


def _stored_views(session_factory: sessionmaker, paste_id: str) -> int:
    with session_factory() as session:
        record = PasteRepository(session=session).get(uuid.UUID(paste_id))
    assert record is not None
    return record.views


def _broken(*_args, **_kwargs):
    raise OperationalError("statement", {}, Exception("disk I/O error"))


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def test_create_paste_stores_creation_time_from_clock(
    service_at: ServiceAt, session_factory: sessionmaker
) -> None:
    dto = service_at(T0).create_paste(content="hello", ttl_seconds=10, max_views=3)

    assert dto["created_at"] == T0
    assert dto["ttl_seconds"] == 10
    assert dto["max_views"] == 3
    assert _stored_views(session_factory, dto["id"]) == 0


def test_creation_time_ignores_read_clock(
    session_factory: sessionmaker,
) -> None:
    # Only reads are pinned; creation stamps the wall clock.
    service = PasteService(session_factory=session_factory, clock=fixed_clock(0))
    before = system_clock()

    dto = service.create_paste(content="stamped", ttl_seconds=3600)

    assert before <= dto["created_at"] <= system_clock()
    live = PasteService(session_factory=session_factory)
    assert live.retrieve_paste_for_view(dto["id"])["content"] == "stamped"


def test_largest_limits_are_stored_and_served(service_at: ServiceAt) -> None:
    paste_id = service_at(T0).create_paste(
        content="long lived", ttl_seconds=MAX_LIMIT, max_views=MAX_LIMIT
    )["id"]

    viewed = service_at(T0 + 1).retrieve_paste_for_view(paste_id)

    assert viewed["remaining_views"] == MAX_LIMIT - 1
    assert viewed["expires_at"] is not None


def test_create_paste_keeps_content_untrimmed(service_at: ServiceAt) -> None:
    dto = service_at(T0).create_paste(content="  spaced  ")
    assert service_at(T0).retrieve_paste_for_view(dto["id"])["content"] == "  spaced  "


@pytest.mark.parametrize(
    "kwargs",
    [
        {"content": ""},
        {"content": "   "},
        {"content": "x", "ttl_seconds": 0},
        {"content": "x", "max_views": -1},
        {"content": "x", "ttl_seconds": MAX_LIMIT + 1},
        {"content": "x", "max_views": 10**20},
    ],
)
def test_create_paste_rejects_invalid_input(service_at: ServiceAt, kwargs: dict) -> None:
    with pytest.raises(InvalidPasteParameters):
        service_at(T0).create_paste(**kwargs)


def test_invalid_input_never_reaches_storage(
    service_at: ServiceAt, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(PasteRepository, "insert", _broken)
    with pytest.raises(InvalidPasteParameters):
        service_at(T0).create_paste(content="   ")


def test_created_ids_are_unique(service_at: ServiceAt) -> None:
    service = service_at(T0)
    ids = {service.create_paste(content=f"paste {n}")["id"] for n in range(200)}
    assert len(ids) == 200


def test_create_paste_reports_storage_failure(
    service_at: ServiceAt, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(PasteRepository, "insert", _broken)
    with pytest.raises(PasteStorageError):
        service_at(T0).create_paste(content="hello")


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def test_single_view_paste_is_served_exactly_once(
    service_at: ServiceAt, session_factory: sessionmaker
) -> None:
    paste_id = service_at(T0).create_paste(content="once only", max_views=1)["id"]

    viewed = service_at(T0 + 1).retrieve_paste_for_view(paste_id)
    assert viewed == {"content": "once only", "remaining_views": 0, "expires_at": None}

    with pytest.raises(PasteNotFoundError):
        service_at(T0 + 2).retrieve_paste_for_view(paste_id)

    # The failed read does not count as a view.
    assert _stored_views(session_factory, paste_id) == 1


def test_ttl_expiry_boundary(service_at: ServiceAt) -> None:
    paste_id = service_at(T0).create_paste(content="brief", ttl_seconds=1)["id"]

    viewed = service_at(T0 + 999).retrieve_paste_for_view(paste_id)
    assert viewed["expires_at"] == "2023-11-14T22:13:21.000Z"
    assert viewed["remaining_views"] is None

    with pytest.raises(PasteNotFoundError):
        service_at(T0 + 1000).retrieve_paste_for_view(paste_id)


def test_remaining_views_count_down(service_at: ServiceAt) -> None:
    paste_id = service_at(T0).create_paste(content="three", max_views=3)["id"]
    service = service_at(T0)

    remaining = [service.retrieve_paste_for_view(paste_id)["remaining_views"] for _ in range(3)]

    assert remaining == [2, 1, 0]
    with pytest.raises(PasteNotFoundError):
        service.retrieve_paste_for_view(paste_id)


def test_unlimited_paste_counts_every_view(
    service_at: ServiceAt, session_factory: sessionmaker
) -> None:
    paste_id = service_at(T0).create_paste(content="forever")["id"]
    service = service_at(T0 + 365 * 24 * 3600 * 1000)

    for _ in range(5):
        assert service.retrieve_paste_for_view(paste_id)["content"] == "forever"

    assert _stored_views(session_factory, paste_id) == 5


@pytest.mark.parametrize("paste_id", [str(uuid.uuid4()), "not-a-uuid", ""])
def test_unknown_or_malformed_id_is_not_found(service_at: ServiceAt, paste_id: str) -> None:
    with pytest.raises(PasteNotFoundError):
        service_at(T0).retrieve_paste_for_view(paste_id)


def test_paste_is_only_reachable_by_canonical_id(service_at: ServiceAt) -> None:
    paste_id = service_at(T0).create_paste(content="one address")["id"]
    uid = uuid.UUID(paste_id)

    for alias in (f"{{{paste_id}}}", uid.urn, uid.hex):
        with pytest.raises(PasteNotFoundError):
            service_at(T0).retrieve_paste_for_view(alias)

    assert service_at(T0).retrieve_paste_for_view(paste_id.upper())["content"] == "one address"


def test_missing_and_expired_pastes_raise_identical_errors(service_at: ServiceAt) -> None:
    paste_id = service_at(T0).create_paste(content="gone", ttl_seconds=1)["id"]

    with pytest.raises(PasteNotFoundError) as expired:
        service_at(T0 + 5000).retrieve_paste_for_view(paste_id)
    with pytest.raises(PasteNotFoundError) as missing:
        service_at(T0 + 5000).retrieve_paste_for_view(str(uuid.uuid4()))

    assert str(expired.value) == str(missing.value)


def test_failed_view_increment_still_serves_content(
    service_at: ServiceAt,
    session_factory: sessionmaker,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    paste_id = service_at(T0).create_paste(content="best effort", max_views=2)["id"]
    monkeypatch.setattr(PasteRepository, "increment_view", _broken)

    viewed = service_at(T0).retrieve_paste_for_view(paste_id)

    assert viewed["content"] == "best effort"
    assert viewed["remaining_views"] == 1
    assert _stored_views(session_factory, paste_id) == 0


def test_lookup_failure_is_reported_as_storage_error(
    service_at: ServiceAt, monkeypatch: pytest.MonkeyPatch
) -> None:
    paste_id = service_at(T0).create_paste(content="hello")["id"]
    monkeypatch.setattr(PasteRepository, "get", _broken)

    with pytest.raises(PasteStorageError):
        service_at(T0).retrieve_paste_for_view(paste_id)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def test_concurrent_reads_do_not_lose_increments(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite:///{tmp_path / 'pastes.db'}", future=True)
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    service = PasteService(session_factory=factory, clock=fixed_clock(T0))

    try:
        paste_id = service.create_paste(content="popular", max_views=5)["id"]

        def read() -> Optional[int]:
            try:
                return service.retrieve_paste_for_view(paste_id)["remaining_views"]
            except PasteNotFoundError:
                return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: read(), range(20)))

        served = [remaining for remaining in results if remaining is not None]

        # At least the capped number of reads succeed; racing reads may over-serve.
        assert len(served) >= 5
        # Every served read was counted, each against a distinct stored count.
        assert _stored_views(factory, paste_id) == len(served)
        assert len(set(served)) == len(served)
    finally:
        engine.dispose()
