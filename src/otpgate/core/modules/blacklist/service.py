from datetime import datetime, timedelta
from typing import Any

import structlog
from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from otpgate.core.core import Service
from otpgate.core.modules.blacklist.models import Blacklist, LockoutStatus
from otpgate.errors import RateLimitedError
from otpgate.utils import normalize_ip, now

logger = structlog.get_logger(__name__)


class BlacklistService(Service):
    """Per-IP attempt counting and timed suspension.

    All state lives in the ``blacklist`` collection and every mutation is a
    single-document atomic update, so concurrent requests from the same IP
    across processes see one counter.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("blacklist")

    async def on_start(self) -> None:
        await self._collection.create_index([("ip_address", 1)], unique=True)

    @property
    def max_attempts(self) -> int:
        return self.config.lockout_max_attempts

    async def check(self, ip: str) -> LockoutStatus:
        """Report whether the IP is locked, clearing an elapsed lock first."""
        ip_address = normalize_ip(ip)
        doc = await self._collection.find_one({"ip_address": ip_address})
        if doc is None:
            return self._status(attempts=0)
        return await self._resolve(Blacklist.model_validate(doc))

    async def ensure_not_blocked(self, ip: str) -> LockoutStatus:
        """Raise RateLimitedError if the IP is under an active lock."""
        status = await self.check(ip)
        if status.blocked:
            raise RateLimitedError(
                "You have exceeded the maximum number of attempts, please try again later",
                reason="max_attempts_exceeded",
            )
        return status

    async def record_attempt(self, ip: str) -> LockoutStatus:
        """Count one attempt for the IP and enforce the threshold.

        Raises:
            RateLimitedError: If the IP is already locked, or this attempt
                pushed it over the threshold (which applies the lock)
        """
        ip_address = normalize_ip(ip)
        # Clears an elapsed lock before counting, so this attempt starts a fresh window
        await self.ensure_not_blocked(ip_address)

        status = await self._resolve(await self._increment(ip_address))
        if status.blocked:
            # Locked by a concurrent request in the meantime
            raise RateLimitedError(
                "You have exceeded the maximum number of attempts, please try again later",
                reason="max_attempts_exceeded",
            )

        if status.attempts > self.max_attempts:
            await self._block(ip_address)
            raise RateLimitedError(
                "You have exceeded the maximum number of attempts, please try again after 24 hours",
                reason="max_attempts_exceeded_24h",
            )

        return status

    async def reset(self, ip: str) -> None:
        """Forgive counted attempts. An active lock is left untouched."""
        await self._collection.update_one({"ip_address": normalize_ip(ip)}, {"$set": {"attempts": 0, "updated_at": now()}})

    async def _increment(self, ip_address: str) -> Blacklist:
        """Atomically add one attempt, creating the record on first sight of the IP."""
        for _ in range(2):
            timestamp = now()
            try:
                doc = await self._collection.find_one_and_update(
                    {"ip_address": ip_address},
                    {
                        "$inc": {"attempts": 1},
                        "$set": {"updated_at": timestamp},
                        "$setOnInsert": {
                            "_id": Blacklist(ip_address=ip_address).id,
                            "blocked_until": None,
                            "is_blocked": False,
                            "is_permanently_blocked": False,
                            "created_at": timestamp,
                        },
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
            except DuplicateKeyError:
                # Another request inserted the record first; the retry matches it
                continue
            return Blacklist.model_validate(doc)
        raise RuntimeError(f"Could not record attempt for '{ip_address}'")

    async def _block(self, ip_address: str) -> None:
        timestamp = now()
        blocked_until = timestamp + timedelta(seconds=self.config.lockout_duration_seconds)
        await self._collection.update_one(
            {"ip_address": ip_address},
            {"$set": {"attempts": 0, "is_blocked": True, "blocked_until": blocked_until, "updated_at": timestamp}},
        )
        logger.warning("lockout_applied", ip_address=ip_address, blocked_until=blocked_until.isoformat())

    async def _resolve(self, record: Blacklist) -> LockoutStatus:
        """Turn a stored record into a status, lazily expiring a stale lock."""
        if not record.is_blocked:
            return self._status(attempts=record.attempts)

        timestamp = now()
        if record.blocked_until is not None and timestamp <= record.blocked_until:
            return self._status(attempts=record.attempts, blocked_until=record.blocked_until)

        # Guarded on the stale blocked_until so a lock re-applied concurrently survives
        await self._collection.update_one(
            {"ip_address": record.ip_address, "is_blocked": True, "blocked_until": record.blocked_until},
            {"$set": {"attempts": 0, "blocked_until": None, "is_blocked": False, "updated_at": timestamp}},
        )
        logger.info("lockout_expired", ip_address=record.ip_address)
        return self._status(attempts=0)

    def _status(self, attempts: int, blocked_until: datetime | None = None) -> LockoutStatus:
        return LockoutStatus(
            blocked=blocked_until is not None,
            attempts=attempts,
            blocked_until=blocked_until,
            max_attempts=self.max_attempts,
        )
