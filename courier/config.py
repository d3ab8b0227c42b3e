from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    api_base_url: str = "https://api.katakksa.com"
    api_timeout_seconds: float = 15.0
    redis_url: str = "redis://localhost:6379/0"
    default_language: str = "en"

    # Notification relay (worker)
    notification_poll_interval_sec: float = 60.0
    notification_seen_ttl_seconds: int = 7 * 86400  # refreshed on every poll that still sees the notification
    session_ttl_seconds: int = 3600  # how long a session stays in the poll set after its last request
    toast_queue_max_length: int = 100  # undrained toasts kept per user, newest first
    toast_ttl_seconds: int = 86400
    worker_concurrency: int = 10  # max feeds polled at once (semaphore limit)
    worker_metrics_port: int = 9090

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
