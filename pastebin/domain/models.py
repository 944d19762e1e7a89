from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, Integer, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, validates

from pastebin.db import Base


@dataclass(frozen=True)
class PasteRecord:
    """Immutable snapshot of a stored paste, as seen by the lifecycle rules."""

    id: uuid.UUID
    content: str
    created_at: int
    ttl_seconds: Optional[int] = None
    max_views: Optional[int] = None
    views: int = 0


class Paste(Base):
    """Paste entity persisted via SQLAlchemy."""

    __tablename__ = "pastes"
    __table_args__ = (
        CheckConstraint(
            "ttl_seconds IS NULL OR ttl_seconds >= 1",
            name="ck_pastes_ttl_seconds_min_1",
        ),
        CheckConstraint(
            "max_views IS NULL OR max_views >= 1",
            name="ck_pastes_max_views_min_1",
        ),
        CheckConstraint("views >= 0", name="ck_pastes_views_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    ttl_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_views: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Epoch milliseconds.
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    views: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )

    @validates("content", "ttl_seconds", "max_views", "created_at")
    def _validate_immutable_fields(self, key: str, value):
        """
        Enforce that creation-time fields are immutable.

        The value can be set on new instances, but any subsequent attempt to
        change it will raise an error. Only ``views`` ever changes, and only
        through the repository's atomic increment.
        """

        current = getattr(self, key, None)
        if current is not None and current != value:
            raise ValueError(f"Paste {key} is immutable and cannot be modified.")
        return value

    @classmethod
    def from_record(cls, record: PasteRecord) -> "Paste":
        return cls(
            id=record.id,
            content=record.content,
            ttl_seconds=record.ttl_seconds,
            max_views=record.max_views,
            created_at=record.created_at,
            views=record.views,
        )

    def to_record(self) -> PasteRecord:
        return PasteRecord(
            id=self.id,
            content=self.content,
            ttl_seconds=self.ttl_seconds,
            max_views=self.max_views,
            created_at=self.created_at,
            views=self.views,
        )
