"""Notification job queue.

Settlement notifications are pushed as JSON jobs onto a Redis list and
consumed by a separate worker. Enqueueing is best effort from the caller's
point of view: ``enqueue`` returns False instead of raising when the queue is
unavailable, so a Redis outage never blocks reconciliation.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


@dataclass
class NotificationJob:
    """Notification job payload.

    Attributes:
        user_id: Recipient (payer address, merchant id or user id)
        title: Short title
        message: Body text
        type: Job type (payment_completed, transfer_completed, ...)
        metadata: Extra fields (payment id, tx hash, amount)
    """

    user_id: str
    title: str
    message: str
    type: str
    metadata: dict = field(default_factory=dict)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_json(self) -> str:
        return json.dumps(asdict(self), default=str)


class NotificationQueue(ABC):
    """Abstract notification queue."""

    @abstractmethod
    async def enqueue(self, job: NotificationJob) -> bool:
        """Push a job. Returns True on success, False if it could not be queued."""
        pass

    async def close(self) -> None:
        pass


class RedisNotificationQueue(NotificationQueue):
    """Redis list-backed queue (LPUSH producer, BRPOP consumer)."""

    def __init__(self, redis_url: str, queue_name: str = "blinks:notifications"):
        self.queue_name = queue_name
        self.client = aioredis.from_url(redis_url, decode_responses=True)

    async def enqueue(self, job: NotificationJob) -> bool:
        try:
            await self.client.lpush(self.queue_name, job.to_json())
            logger.debug(f"Queued {job.type} notification for {job.user_id}")
            return True
        except RedisError as e:
            logger.error(f"Failed to queue {job.type} notification: {e}")
            return False

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self.client.aclose()


class InMemoryNotificationQueue(NotificationQueue):
    """Queue held in a list (dev/tests).

    Only the newest ``max_jobs`` jobs are kept; older ones are dropped.
    """

    def __init__(self, max_jobs: int = 1000):
        self.max_jobs = max_jobs
        self.jobs: list[NotificationJob] = []

    async def enqueue(self, job: NotificationJob) -> bool:
        self.jobs.append(job)
        if len(self.jobs) > self.max_jobs:
            dropped = len(self.jobs) - self.max_jobs
            del self.jobs[:dropped]
            logger.warning(f"In-memory notification queue full, dropped {dropped} job(s)")
        return True


def create_notification_queue(redis_url: Optional[str], queue_name: str) -> NotificationQueue:
    """Redis queue when REDIS_URL is set, in-memory otherwise."""
    if redis_url:
        return RedisNotificationQueue(redis_url, queue_name)
    logger.warning("REDIS_URL not set - notifications kept in memory")
    return InMemoryNotificationQueue()
