"""Column mixins shared by the ORM models."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from core.utils.datetime import now


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )


class SoftDeleteMixin:
    """
    Rows are never removed; they are flagged instead.

    Default ORM selects skip flagged rows (see ``database.engine``).
    """

    is_deleted: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, index=True
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    def soft_delete(self) -> None:
        self.is_deleted = True
        self.deleted_at = now()

    def restore(self) -> None:
        self.is_deleted = False
        self.deleted_at = None
