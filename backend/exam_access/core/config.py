import os
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):

    port: int = 8000
    environment: str = "development"

    postgres_user: str = os.getenv("POSTGRES_USER", "user")
    postgres_password: str = os.getenv("POSTGRES_PASSWORD", "password")
    postgres_db: str = os.getenv("POSTGRES_DB", "exam_access_db")
    postgres_host: str = os.getenv("POSTGRES_HOST", "db")
    postgres_port: int = 5432

    # Full URL override, e.g. sqlite:///./exam_access.db
    sqlalchemy_database_url: Optional[str] = None

    db_pool_size: int = 20
    db_max_overflow: int = 40
    db_pool_recycle: int = 1800
    db_pool_timeout: int = 20

    @property
    def database_url(self) -> str:
        if self.sqlalchemy_database_url:
            return self.sqlalchemy_database_url
        return f"postgresql://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    cors_origins_str: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins_str.split(",")]

    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    policy_cache_enabled: bool = True
    policy_cache_ttl: int = 600

    default_max_attempts: int = 3
    default_max_security_incidents: int = 5
    default_enable_auto_suspend: bool = True
    default_additional_security_incidents_after_removal: int = 3
    default_additional_attempts_after_payment: int = 2

    # "session": counter restarts with every attempt session
    # "exam": counter accumulates for the lifetime of the (student, exam) pair
    incident_count_scope: str = "session"
    block_retake_after_pass: bool = True

    default_timezone: str = "Asia/Kolkata"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
