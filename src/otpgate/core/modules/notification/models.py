from enum import StrEnum
from uuid import UUID

from otpgate.core.db import TimestampedModel


class IconType(StrEnum):
    ICON = "icon"
    IMAGE = "image"


class AuthNotification(TimestampedModel):
    """In-app notification raised by the auth flow (welcome, new login).

    Indexed on (user_id, created_at).
    """

    user_id: UUID
    icon_type: IconType = IconType.ICON
    icon: str | None = None
    image_url: str | None = None
    title: str
    description: str
    type: str = "info"
    link: str | None = None
    is_read: bool = False
