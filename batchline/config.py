from dataclasses import dataclass
import os

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    app_name: str
    database_url: str
    log_level: str
    commit_interval: int
    index_name: str
    csv_delimiter: str
    max_write_retries: int
    retry_backoff_seconds: float
    fail_fast: bool


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("APP_NAME", "batchline"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./batchline.db"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        commit_interval=int(os.getenv("COMMIT_INTERVAL", "1")),
        index_name=os.getenv("INDEX_NAME", "twitter"),
        csv_delimiter=os.getenv("CSV_DELIMITER", ","),
        max_write_retries=int(os.getenv("MAX_WRITE_RETRIES", "0")),
        retry_backoff_seconds=float(os.getenv("RETRY_BACKOFF_SECONDS", "1")),
        fail_fast=_env_flag("FAIL_FAST", "false"),
    )
