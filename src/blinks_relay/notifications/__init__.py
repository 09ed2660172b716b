"""Notification job queue."""

from blinks_relay.notifications.queue import (
    InMemoryNotificationQueue,
    NotificationJob,
    NotificationQueue,
    RedisNotificationQueue,
    create_notification_queue,
)

__all__ = [
    "NotificationJob",
    "NotificationQueue",
    "RedisNotificationQueue",
    "InMemoryNotificationQueue",
    "create_notification_queue",
]
