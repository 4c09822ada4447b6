from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str
    # Tokens are issued by the identity provider; this service only verifies them
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    REDIS_URL: str = "redis://redis:6379/0"

    # --- KAFKA SETTINGS ---
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_ALERT_TOPIC: str = "notification_alerts"

    # Expo push service
    PUSH_SERVICE_URL: str = "https://exp.host/--/api/v2/push/send"

    # Object storage for listing images
    STORAGE_URL: str = "http://storage:5000"
    STORAGE_BUCKET: str = "rental-images"
    STORAGE_API_KEY: str = ""

    LOG_LEVEL: str = "INFO"

    # 3600 (1 hour) in production
    BOOKING_SCHEDULER_INTERVAL_SECONDS: int = 3600

    model_config = SettingsConfigDict(env_file=".env")


settings = Settings()
