from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    ForeignKey,
    Enum as SQLEnum,
    UniqueConstraint,
    CheckConstraint,
)
from database.engine import Base, IdType
from database.mixins import TimestampMixin
from enum import Enum as PyEnum


class ConnectionStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"


class Connection(Base, TimestampMixin):
    """
    A pending request or an accepted connection between two users.

    ``user_low_id``/``user_high_id`` hold the pair in ascending order so that
    either direction of the same pair maps to one row. Rejected requests and
    removed connections are deleted.
    """

    __tablename__ = "connections"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_connection_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_connection_distinct_users"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    addressee_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_low_id: Mapped[int] = mapped_column(IdType, nullable=False, index=True)
    user_high_id: Mapped[int] = mapped_column(IdType, nullable=False, index=True)
    status: Mapped[ConnectionStatus] = mapped_column(
        SQLEnum(ConnectionStatus, native_enum=False, length=20),
        nullable=False,
        default=ConnectionStatus.PENDING,
    )

    @staticmethod
    def ordered_pair(a: int, b: int) -> tuple[int, int]:
        return (a, b) if a < b else (b, a)

    def other_user(self, user_id: int) -> int:
        return self.addressee_id if user_id == self.requester_id else self.requester_id
