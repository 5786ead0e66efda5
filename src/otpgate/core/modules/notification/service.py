from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from otpgate.core.core import Service
from otpgate.core.modules.notification.models import AuthNotification, IconType
from otpgate.core.pagination import PaginationResult

logger = structlog.get_logger(__name__)


class NotificationService(Service):
    """Stores auth notifications shown in the user's notification center."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("auth_notifications")

    async def on_start(self) -> None:
        await self._collection.create_index([("user_id", 1), ("created_at", -1)])

    async def notify_welcome(self, user_id: UUID) -> None:
        product = self.config.product_name
        await self._create(
            AuthNotification(
                user_id=user_id,
                icon=self.config.welcome_notification_icon_url,
                title=f"Welcome to {product}",
                description=(
                    f"Thank you very much for joining {product}. We hope you will enjoy our service. "
                    "If you have any questions, please contact our support department."
                ),
            )
        )

    async def notify_new_login(self, user_id: UUID, ip: str) -> None:
        await self._create(
            AuthNotification(
                user_id=user_id,
                icon_type=IconType.IMAGE,
                image_url=self.config.login_notification_image_url,
                title="New login",
                description=f"New login from {ip}",
                link="/account/security",
            )
        )

    async def get_user_notifications(self, user_id: UUID, limit: int = 50, offset: int = 0) -> PaginationResult[AuthNotification]:
        """Get paginated notifications for a user, newest first."""
        query = {"user_id": user_id}
        total = await self._collection.count_documents(query)
        cursor = self._collection.find(query).sort("created_at", -1).skip(offset).limit(limit)
        items = await AuthNotification.list_cursor(cursor)
        return PaginationResult(items=items, total=total, limit=limit, offset=offset)

    async def _create(self, notification: AuthNotification) -> None:
        # Best-effort: a lost notification must not fail the auth flow
        try:
            await self._collection.insert_one(notification.to_mongo())
        except PyMongoError:
            logger.exception("notification_create_failed", user_id=notification.user_id, title=notification.title)
