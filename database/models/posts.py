"""
Posts Module

Social feed: posts, tags (a user or a company), comments and per-user
interactions (like / share / save).
"""

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String,
    ForeignKey,
    Text,
    Enum as SQLEnum,
    UniqueConstraint,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from enum import Enum as PyEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from database.models.users import User


class PostVisibility(str, PyEnum):
    PUBLIC = "public"
    CONNECTIONS = "connections"
    PRIVATE = "private"


class TagType(str, PyEnum):
    USER = "user"
    COMPANY = "company"


class InteractionKind(str, PyEnum):
    LIKE = "like"
    SHARE = "share"
    SAVE = "save"


class Post(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "posts"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    author_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    media_url: Mapped[str | None] = mapped_column(String(1000))
    visibility: Mapped[PostVisibility] = mapped_column(
        SQLEnum(PostVisibility, native_enum=False, length=20),
        nullable=False,
        default=PostVisibility.PUBLIC,
        index=True,
    )

    author: Mapped["User"] = relationship("User")
    tags: Mapped[list["PostTag"]] = relationship(
        "PostTag", cascade="all, delete-orphan", lazy="selectin"
    )


class PostTag(Base):
    __tablename__ = "post_tags"
    __table_args__ = (
        UniqueConstraint("post_id", "tag_type", "target_id", name="uq_post_tag"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tag_type: Mapped[TagType] = mapped_column(
        SQLEnum(TagType, native_enum=False, length=20), nullable=False
    )
    # users.id or companies.id depending on tag_type
    target_id: Mapped[int] = mapped_column(IdType, nullable=False)


class PostInteraction(Base, TimestampMixin):
    __tablename__ = "post_interactions"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", "kind", name="uq_post_interaction"),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[InteractionKind] = mapped_column(
        SQLEnum(InteractionKind, native_enum=False, length=20), nullable=False
    )


class Comment(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    author_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content: Mapped[str] = mapped_column(String(1000), nullable=False)
