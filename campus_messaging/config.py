from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite+aiosqlite:///./campus_messaging.db"
    database_echo: bool = False

    # Identity (tokens are issued by the campus auth service)
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours
    session_cookie_name: str = "campus_session"

    # Redis
    redis_url: str = ""  # Optional Redis URL for pub/sub fan-out (local: redis://localhost:6379)
    redis_channel: str = "messages:events"

    # Messaging
    max_message_length: int = 4000
    live_queue_size: int = 256  # Pending events per live subscription before it is dropped

    log_level: str = "INFO"

    cors_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()
