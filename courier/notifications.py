"""
Notification feed relay: poll each active user's remote feed and queue unseen unread
notifications as toasts. Polls are idempotent (Redis SET NX per notification) and a
failing feed never stops the others or the loop.
"""
import asyncio
import logging
from collections.abc import Callable

import redis.asyncio as redis

from courier.api_client import ApiClientError, OrderApiClient
from courier.config import settings
from courier.metrics import notification_poll_failures_total, notification_polls_total, notification_toasts_total
from courier.models import Notification
from courier.redis_client import active_sessions, check_idempotency, push_toast

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], OrderApiClient]


def seen_key(user_id: str, notification_id: str) -> str:
    return f"notification:seen:{user_id}:{notification_id}"


def unread_count(notifications: list[Notification]) -> int:
    return sum(1 for n in notifications if not n.read)


async def mark_as_read(api: OrderApiClient, notification_ids: list[str]) -> None:
    if not notification_ids:
        return
    await api.mark_notifications_read(notification_ids)


class NotificationRelay:
    def __init__(self, client_factory: ClientFactory = OrderApiClient, concurrency: int | None = None):
        self._client_factory = client_factory
        self._sem = asyncio.Semaphore(concurrency or settings.worker_concurrency)
        self._lock = asyncio.Lock()

    async def relay_user_feed(self, user_id: str, token: str) -> int:
        """Queue toasts for new unread notifications of one user. Returns how many were queued."""
        async with self._sem:
            async with self._client_factory(token) as api:
                notifications = await api.get_notifications()
        queued = 0
        for n in notifications:
            if n.read:
                continue
            if await check_idempotency(seen_key(user_id, n.id), settings.notification_seen_ttl_seconds, refresh=True):
                continue
            await push_toast(user_id, {"id": n.id, "title": n.title, "message": n.message, "type": n.type})
            queued += 1
        if queued:
            notification_toasts_total.inc(queued)
            logger.info("Queued %d toast(s) for user_id=%s", queued, user_id)
        return queued

    async def _relay_safely(self, user_id: str, token: str) -> int:
        notification_polls_total.inc()
        try:
            return await self.relay_user_feed(user_id, token)
        except (ApiClientError, redis.RedisError) as e:
            notification_poll_failures_total.inc()
            logger.warning("Notification poll failed for user_id=%s: %s", user_id, e)
            return 0

    async def poll_once(self) -> int | None:
        """Poll every active session once. Returns None when a previous poll is still running."""
        if self._lock.locked():
            logger.info("Previous notification poll still running, skipping this tick")
            return None
        async with self._lock:
            sessions = await active_sessions()
            if not sessions:
                return 0
            results = await asyncio.gather(*(self._relay_safely(uid, tok) for uid, tok in sessions.items()))
            return sum(results)

    async def run(self, shutdown_event: asyncio.Event, interval: float | None = None) -> None:
        interval = settings.notification_poll_interval_sec if interval is None else interval
        while not shutdown_event.is_set():
            try:
                queued = await self.poll_once()
            except redis.RedisError as e:
                notification_poll_failures_total.inc()
                logger.warning("Could not read active sessions: %s", e)
                queued = None
            if queued:
                logger.info("Notification poll queued %d toast(s)", queued)
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
