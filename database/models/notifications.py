from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    Enum as SQLEnum,
)
from database.engine import Base, IdType
from database.mixins import SoftDeleteMixin, TimestampMixin
from enum import Enum as PyEnum


class NotificationType(str, PyEnum):
    NEW_POST = "newPost"
    NEW_JOB = "newJob"
    APPLICATION_UPDATE = "applicationUpdate"
    POST_INTERACTION = "postInteraction"
    CONNECTION_REQUEST = "connectionRequest"
    NEW_MESSAGE = "newMessage"
    JOB_OFFER = "jobOffer"
    EMPLOYER_APPROVAL_REQUEST = "employerApprovalRequest"
    EMPLOYER_APPROVAL = "employerApproval"


class Notification(Base, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(IdType, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        IdType, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, native_enum=False, length=50), nullable=False
    )
    # Id of the job / post / chat / user the notification is about
    related_id: Mapped[str | None] = mapped_column(String(64))
    message: Mapped[str] = mapped_column(String(1000), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user_id={self.user_id}, type={self.type})>"
