from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    DEBUG: bool = False
    APP_NAME: str = "notifyhub"
    version: str = "0.1.0"
    APP_DATABASE_DSN: str = "sqlite:////tmp/notifyhub.db"
    REDIS_URL: str = "redis://localhost:6379"

    # Real-time fanout
    REALTIME_BACKPLANE: str = "redis"  # "redis" or "memory"
    PROCESS_ID: str = ""  # defaults to hostname:pid when empty

    # Identity verification (tokens are issued elsewhere)
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"

    # Pipeline
    GROUPING_WINDOW_SECONDS: int = 3600
    CHANNEL_TIMEOUT_SECONDS: float = 10.0
    DELIVERY_MAX_ATTEMPTS: int = 5

    # SMTP
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "notifications@example.com"
    SMTP_FROM_NAME: str = "Notifications"

    # Push (Expo push API)
    PUSH_API_URL: str = "https://exp.host/--/api/v2/push/send"
    PUSH_ACCESS_TOKEN: str = ""

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def redis_backplane_enabled(self) -> bool:
        return self.REALTIME_BACKPLANE == "redis" and bool(self.REDIS_URL)


settings = Settings()
