from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    redis_url: str = "redis://localhost:6379"
    redis_max_connections: int = 50
    redis_socket_timeout: int = 5
    redis_reconnect_max_attempts: int = 10
    redis_backoff_base_seconds: float = 0.1
    redis_backoff_cap_seconds: float = 3.0

    device_ttl_seconds: int = 7 * 24 * 60 * 60
    sensor_ttl_seconds: int = 30 * 24 * 60 * 60
    alert_ttl_seconds: int = 7 * 24 * 60 * 60
    log_ttl_seconds: int = 30 * 24 * 60 * 60
    subscription_ttl_seconds: int = 7 * 24 * 60 * 60
    topic_ttl_seconds: int = 7 * 24 * 60 * 60

    sensor_timeseries_max_entries: int = 1000
    alerts_per_device_max: int = 50
    logs_global_max: int = 10000
    logs_per_device_max: int = 1000
    recent_messages_per_device: int = 100

    work_queue_max_size: int = 10000
    work_queue_worker_count: int = 4

    fanout_send_timeout_seconds: float = 1.0
    device_statistics_interval_seconds: int = 60

    broker_require_auth: bool = False
    broker_users: dict[str, str] = {}

    log_level: str = "INFO"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
