import urllib.parse
from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from otpgate.core.core import Service
from otpgate.core.modules.user.models import Avatar, User, UserRole, UserStatus
from otpgate.errors import ConflictError
from otpgate.utils import normalize_email, now

logger = structlog.get_logger(__name__)


def generate_avatar_url(name: str) -> str:
    """Fallback avatar with the user's initials."""
    return f"https://ui-avatars.com/api/?name={urllib.parse.quote(name)}&background=random"


class UserService(Service):
    """Reads and writes user records. Nothing is cached between requests."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        await self._collection.create_index([("email", 1)], unique=True)

    async def get_user(self, user_id: UUID) -> User | None:
        doc = await self._collection.find_one({"_id": user_id})
        return User.model_validate(doc) if doc else None

    async def get_user_by_email(self, email: str) -> User | None:
        doc = await self._collection.find_one({"email": normalize_email(email)})
        return User.model_validate(doc) if doc else None

    async def create_pending_user(self, email: str, name: str | None, role: UserRole) -> User:
        """Create a user in pending status on first signup."""
        user = User(email=normalize_email(email), name=name or "", role=role, status=UserStatus.PENDING)
        if name:
            user.avatar = Avatar(url=generate_avatar_url(name))
        try:
            await self._collection.insert_one(user.to_mongo())
        except DuplicateKeyError as e:
            # Concurrent signup for the same address won the insert
            raise ConflictError("User already exists, please login to continue", reason="user_already_exists") from e
        logger.info("user_created", user_id=user.id, role=user.role)
        return user

    async def activate(self, user_id: UUID) -> None:
        await self._collection.update_one(
            {"_id": user_id}, {"$set": {"status": UserStatus.ACTIVE, "updated_at": now()}}
        )

    async def add_session(self, user_id: UUID, session_id: UUID) -> None:
        await self._collection.update_one(
            {"_id": user_id}, {"$addToSet": {"sessions": session_id}, "$set": {"updated_at": now()}}
        )
