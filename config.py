import os
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Runtime settings, read once from the environment (and `.env`)."""

    def __init__(
            self,
            database_url: str = None,
            timezone: str = None,
            allow_negative_saldo: bool = None,
            cors_origins: List[str] = None,
            log_level: str = None,
            echo_sql: bool = None,
    ):
        self.database_url = database_url or os.getenv("DATABASE_URL", "sqlite:///./danus.db")
        self.timezone = timezone or os.getenv("APP_TIMEZONE", "Asia/Jakarta")
        self.allow_negative_saldo = (
            allow_negative_saldo if allow_negative_saldo is not None
            else _env_bool("ALLOW_NEGATIVE_SALDO")
        )
        if cors_origins is None:
            raw = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
            cors_origins = [o.strip() for o in raw.split(",") if o.strip()]
        self.cors_origins = cors_origins
        self.log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
        self.echo_sql = echo_sql if echo_sql is not None else _env_bool("SQL_ECHO")

    def __repr__(self) -> str:
        return (
            f"Settings(database_url={self.database_url!r}, timezone={self.timezone!r}, "
            f"allow_negative_saldo={self.allow_negative_saldo})"
        )
