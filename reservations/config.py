from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    # The auth service issues tokens; this service only VERIFIES them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # How long a request may wait for the per-property lock before giving up
    LOCK_TIMEOUT_MS: int = 5000

    # --- KAFKA / OUTBOX ---
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_BOOKING_TOPIC: str = "booking_events"
    OUTBOX_POLL_INTERVAL_SECONDS: int = 5

    # Completion sweep runs hourly
    SCHEDULER_POLL_INTERVAL_SECONDS: int = 3600
    BACKGROUND_TASKS_ENABLED: bool = True

    # --- RATE LIMITING ---
    REDIS_URL: str = "redis://redis:6379/0"
    RATE_LIMIT_ENABLED: bool = True  # Killswitch for quick disable

    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
