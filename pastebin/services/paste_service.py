from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pastebin.domain.clock import Clock, system_clock
from pastebin.domain.errors import (
    InvalidPasteParameters,
    PasteNotFoundError,
    PasteStorageError,
)
from pastebin.domain.lifecycle import compute_response, is_visible, validate_create
from pastebin.domain.models import PasteRecord
from pastebin.observability import get_correlation_id
from pastebin.repositories.paste_repository import PasteRepository, PasteStore


logger = logging.getLogger(__name__)


def _parse_paste_id(paste_id: str | uuid.UUID) -> Optional[uuid.UUID]:
    if isinstance(paste_id, uuid.UUID):
        return paste_id
    try:
        uid = uuid.UUID(paste_id)
    except ValueError:
        return None
    # Only the canonical hyphenated form names a paste; braces, urn: and bare hex do not.
    if str(uid) != paste_id.lower():
        return None
    return uid


@dataclass
class PasteService:
    """
    Application service coordinating paste-related use cases.

    Owns session lifecycle: creates a session per use case, commits on success,
    rolls back on exception, and closes the session in a finally block.
    Returns plain dict DTOs; no ORM entities escape this layer. Database
    errors are reported as ``PasteStorageError``.

    ``clock`` supplies the current time for visibility checks on read;
    ``creation_clock`` stamps ``created_at`` on new pastes.
    """

    session_factory: Callable[[], Session]
    clock: Clock = system_clock
    creation_clock: Clock = system_clock

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------
    def create_paste(
        self,
        *,
        content: str,
        ttl_seconds: Optional[int] = None,
        max_views: Optional[int] = None,
    ) -> dict[str, Any]:
        """
        Create a new paste and return ``{"id", "created_at", "ttl_seconds", "max_views"}``.

        Input is checked by ``validate_create`` before storage is touched.
        """
        try:
            validate_create(content, ttl_seconds, max_views)
        except InvalidPasteParameters as exc:
            logger.warning(
                "Invalid parameters when creating paste: %s",
                exc,
                extra={
                    "event": "paste_create_invalid_parameters",
                    "correlation_id": get_correlation_id(),
                },
            )
            raise

        record = PasteRecord(
            id=uuid.uuid4(),
            content=content,
            ttl_seconds=ttl_seconds,
            max_views=max_views,
            created_at=self.creation_clock(),
        )

        session = self.session_factory()
        try:
            PasteRepository(session=session).insert(record)
            session.commit()
            logger.info(
                "Paste created",
                extra={
                    "event": "paste_created",
                    "paste_id": str(record.id),
                    "correlation_id": get_correlation_id(),
                },
            )
            return {
                "id": str(record.id),
                "created_at": record.created_at,
                "ttl_seconds": record.ttl_seconds,
                "max_views": record.max_views,
            }
        except SQLAlchemyError as exc:
            session.rollback()
            raise PasteStorageError("Failed to store paste.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # -------------------------------------------------------------------------
    # Retrieval / viewing
    # -------------------------------------------------------------------------
    def retrieve_paste_for_view(self, paste_id: str | uuid.UUID) -> dict[str, Any]:
        """
        Retrieve a paste for viewing, enforcing view and expiry rules.

        Rules:
        - Unknown or malformed id → PasteNotFoundError
        - Not visible at ``clock()`` (TTL elapsed or views used up) →
          PasteNotFoundError, indistinguishable from an unknown id
        - Otherwise:
          - increment the view count atomically (best-effort)
          - return ``{"content", "remaining_views", "expires_at"}`` computed
            against the incremented count
        """
        uid = _parse_paste_id(paste_id)
        if uid is None:
            self._log_unavailable(paste_id, "malformed_id")
            raise PasteNotFoundError("Not found")

        session = self.session_factory()
        try:
            logger.info(
                "Paste access attempt",
                extra={
                    "event": "paste_access_attempt",
                    "paste_id": str(uid),
                    "correlation_id": get_correlation_id(),
                },
            )

            paste_repo = PasteRepository(session=session)
            paste = paste_repo.get(uid)
            if paste is None:
                self._log_unavailable(uid, "missing")
                raise PasteNotFoundError("Not found")

            now_ms = self.clock()
            if not is_visible(paste, now_ms):
                reason = "view_limit"
                if paste.max_views is None or paste.views < paste.max_views:
                    reason = "expired"
                self._log_unavailable(uid, reason)
                raise PasteNotFoundError("Not found")

            views = self._record_view(session, paste_repo, paste)

            logger.info(
                "Paste access successful",
                extra={
                    "event": "paste_access_success",
                    "paste_id": str(uid),
                    "correlation_id": get_correlation_id(),
                },
            )
            return compute_response(replace(paste, views=views))
        except SQLAlchemyError as exc:
            session.rollback()
            raise PasteStorageError("Failed to load paste.") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _record_view(
        self,
        session: Session,
        paste_repo: PasteStore,
        paste: PasteRecord,
    ) -> int:
        """
        Count one view and return the resulting view count.

        A failed increment does not prevent serving content that was already
        fetched; the count then falls back to the pre-increment value plus one.
        """
        try:
            views = paste_repo.increment_view(paste.id)
            session.commit()
            return views
        except (SQLAlchemyError, LookupError):
            session.rollback()
            logger.warning(
                "Failed to record paste view",
                exc_info=True,
                extra={
                    "event": "paste_view_increment_failed",
                    "paste_id": str(paste.id),
                    "correlation_id": get_correlation_id(),
                },
            )
            return paste.views + 1

    @staticmethod
    def _log_unavailable(paste_id: object, reason: str) -> None:
        logger.info(
            "Paste unavailable",
            extra={
                "event": "paste_unavailable",
                "paste_id": str(paste_id),
                "reason": reason,
                "correlation_id": get_correlation_id(),
            },
        )
