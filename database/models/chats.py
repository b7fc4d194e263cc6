"""
Chats Module

One-to-one conversations. Message bodies are stored only as ciphertext under
a per-chat key, and that key is stored only wrapped under the server secret.
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Text,
    Enum as SQLEnum,
    UniqueConstraint,
    CheckConstraint,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from datetime import datetime
from enum import Enum as PyEnum


class MessageStatus(str, PyEnum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class Chat(Base, TimestampMixin, SoftDeleteMixin):
    """
    Participants are stored as an ordered pair so the unordered pair
    {a, b} maps to exactly one row and a self-chat cannot be stored.
    """

    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_chat_participants"),
        CheckConstraint("user_low_id < user_high_id", name="ck_chat_distinct_participants"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_low_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_high_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Per-chat AES key, encrypted under SERVER_SECRET
    encrypted_key: Mapped[str] = mapped_column(String(255), nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    messages: Mapped[list["Message"]] = relationship(
        "Message", back_populates="chat", order_by="Message.id"
    )

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self.user_low_id, self.user_high_id)

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_participant(self, user_id: int) -> int:
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id


class Message(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sender_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    ciphertext: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[MessageStatus] = mapped_column(
        SQLEnum(MessageStatus, native_enum=False, length=20),
        nullable=False,
        default=MessageStatus.SENT,
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    chat: Mapped["Chat"] = relationship("Chat", back_populates="messages")
