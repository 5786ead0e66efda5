from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, Field

from otpgate.core.db import TimestampedModel
from otpgate.utils import now


class UserStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    BANNED = "banned"
    DELETED = "deleted"


class UserRole(StrEnum):
    USER = "user"
    PARENT = "parent"
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class Avatar(BaseModel):
    bucket_key: str = ""
    url: str = ""


class Subscription(BaseModel):
    """Billing state stub; only created here, managed elsewhere."""

    status: str = "inactive"
    updated_at: datetime = Field(default_factory=lambda: now())


class User(TimestampedModel):
    """User identity record.

    Indexed on email - unique.
    """

    email: str
    name: str = ""
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.PENDING
    avatar: Avatar = Field(default_factory=Avatar)
    subscription: Subscription = Field(default_factory=Subscription)
    sessions: list[UUID] = Field(default_factory=list)

    @property
    def is_terminated(self) -> bool:
        """Banned and deleted accounts can never authenticate."""
        return self.status in (UserStatus.BANNED, UserStatus.DELETED)


class UserView(BaseModel):
    """User account information (API representation)."""

    id: UUID = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    name: str = Field(..., description="Display name")
    role: UserRole = Field(..., description="Account role")
    status: UserStatus = Field(..., description="Account lifecycle status")
    avatar_url: str = Field(..., description="Avatar image URL")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(
            id=user.id, email=user.email, name=user.name, role=user.role, status=user.status, avatar_url=user.avatar.url
        )
