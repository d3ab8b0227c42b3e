"""
Worker: poll the remote notification feed of every active session, queue new toasts in Redis.
- Fixed poll interval; overlapping polls are skipped, failing feeds are logged and counted.
- Prometheus /metrics on WORKER_METRICS_PORT (worker metrics).
- Graceful shutdown on SIGTERM.
Run: python -m courier.worker
"""
import asyncio
import logging
import signal
import sys
import threading

from courier.config import settings
from courier.notifications import NotificationRelay
from courier.redis_client import close_redis, get_redis

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)


def _start_metrics_server() -> None:
    from prometheus_client import start_http_server
    start_http_server(settings.worker_metrics_port)


async def run_worker(shutdown_event: asyncio.Event) -> None:
    await get_redis()
    relay = NotificationRelay()
    logger.info(
        "Notification relay started (interval=%ss, concurrency=%d, api=%s) ...",
        settings.notification_poll_interval_sec,
        settings.worker_concurrency,
        settings.api_base_url,
    )
    try:
        await relay.run(shutdown_event)
    finally:
        await close_redis()
        logger.info("Worker stopped.")


def main() -> None:
    threading.Thread(target=_start_metrics_server, daemon=True).start()
    logger.info("Metrics server listening on port %s", settings.worker_metrics_port)

    shutdown_event = asyncio.Event()

    def on_signal():
        shutdown_event.set()

    loop = asyncio.new_event_loop()
    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, on_signal)
    except NotImplementedError:
        signal.signal(signal.SIGTERM, lambda *a: shutdown_event.set())
        signal.signal(signal.SIGINT, lambda *a: shutdown_event.set())

    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(run_worker(shutdown_event))
    finally:
        loop.close()


if __name__ == "__main__":
    main()
