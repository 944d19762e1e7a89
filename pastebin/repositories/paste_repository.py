from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

from sqlalchemy import Select, Update, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pastebin.domain.errors import DuplicatePasteIdError
from pastebin.domain.models import Paste, PasteRecord
from pastebin.observability import get_correlation_id


logger = logging.getLogger(__name__)


class PasteStore(Protocol):
    """Persistence operations the paste lifecycle relies on."""

    def insert(self, record: PasteRecord) -> None: ...

    def get(self, paste_id: uuid.UUID) -> Optional[PasteRecord]: ...

    def increment_view(self, paste_id: uuid.UUID) -> int: ...


class PasteRepository:
    """
    SQLAlchemy-backed ``PasteStore``.

    All database interaction for Paste should go through this class. It
    returns ``PasteRecord`` snapshots; ORM entities never leave it. The
    caller owns the session and is responsible for committing.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(self, record: PasteRecord) -> None:
        """
        Persist a new Paste.

        Raises ``DuplicatePasteIdError`` if the id is already taken.
        """

        self._session.add(Paste.from_record(record))
        try:
            # Flush so that key conflicts surface here rather than at commit.
            self._session.flush()
        except IntegrityError as exc:
            logger.error(
                "Duplicate paste id on insert",
                extra={
                    "event": "paste_duplicate_id",
                    "paste_id": str(record.id),
                    "correlation_id": get_correlation_id(),
                },
            )
            raise DuplicatePasteIdError(f"Paste with id {record.id} already exists.") from exc

    def get(self, paste_id: uuid.UUID) -> Optional[PasteRecord]:
        """Return a snapshot of the Paste with ``paste_id``, or ``None`` if not found."""

        stmt: Select[tuple[Paste]] = select(Paste).where(Paste.id == paste_id)
        paste = self._session.execute(stmt).scalar_one_or_none()
        if paste is None:
            return None
        return paste.to_record()

    def increment_view(self, paste_id: uuid.UUID) -> int:
        """
        Atomically increment the view count for a Paste.

        Returns the new ``views`` value.
        Raises ``LookupError`` if no Paste with the given id exists.
        """

        stmt: Update = (
            update(Paste)
            .where(Paste.id == paste_id)
            .values(views=Paste.views + 1)
            .returning(Paste.views)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        row = result.one_or_none()
        if row is None:
            raise LookupError(f"Paste with id {paste_id} not found.")

        (new_count,) = row
        return int(new_count)
