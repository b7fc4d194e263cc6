"""ORM models. Importing this package registers every table on ``Base.metadata``."""

from database.models.users import (
    User,
    UserProfile,
    UserRole,
    JobSeeker,
    JobSeekerStatus,
    Employer,
    EmployerRoleType,
    EmployerStatus,
    CompanyAdmin,
    CompanyAdminPermission,
    SuperAdmin,
    SuperAdminPermission,
    AdminStatus,
    SocialPlatform,
)
from database.models.companies import Company, CompanyFollow, CompanySize
from database.models.jobs import Job, JobStatus, JobType, ExperienceLevel, Currency
from database.models.applications import (
    Application,
    ApplicationStatus,
    SavedJob,
    PendingApplication,
    Hire,
)
from database.models.chats import Chat, Message, MessageStatus
from database.models.notifications import Notification, NotificationType
from database.models.posts import (
    Post,
    PostTag,
    PostInteraction,
    Comment,
    PostVisibility,
    TagType,
    InteractionKind,
)
from database.models.connections import Connection, ConnectionStatus

__all__ = [
    "User",
    "UserProfile",
    "UserRole",
    "JobSeeker",
    "JobSeekerStatus",
    "Employer",
    "EmployerRoleType",
    "EmployerStatus",
    "CompanyAdmin",
    "CompanyAdminPermission",
    "SuperAdmin",
    "SuperAdminPermission",
    "AdminStatus",
    "SocialPlatform",
    "Company",
    "CompanyFollow",
    "CompanySize",
    "Job",
    "JobStatus",
    "JobType",
    "ExperienceLevel",
    "Currency",
    "Application",
    "ApplicationStatus",
    "SavedJob",
    "PendingApplication",
    "Hire",
    "Chat",
    "Message",
    "MessageStatus",
    "Notification",
    "NotificationType",
    "Post",
    "PostTag",
    "PostInteraction",
    "Comment",
    "PostVisibility",
    "TagType",
    "InteractionKind",
    "Connection",
    "ConnectionStatus",
]
