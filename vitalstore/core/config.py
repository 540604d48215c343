import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Environment setting
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")

    # Local store
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./vitalstore.db")
    DB_ECHO = _as_bool(os.getenv("DB_ECHO", "false"))

    # Calendar-day buckets for daily aggregates (pytz zone name)
    DAY_BUCKET_TIMEZONE = os.getenv("DAY_BUCKET_TIMEZONE", "UTC")

    # Owner of samples delivered by the paired ring
    DEFAULT_USER_ID = int(os.getenv("DEFAULT_USER_ID", "0"))

    # Longest day range the query API will return
    QUERY_MAX_DAYS = int(os.getenv("QUERY_MAX_DAYS", "1096"))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    LOG_DIR = os.getenv("LOG_DIR", "logs")
    LOG_TO_FILE = _as_bool(os.getenv("LOG_TO_FILE", "true"))

    # Remote sync endpoint
    SYNC_API_BASE_URL = os.getenv("SYNC_API_BASE_URL", "http://localhost:8080/api/")
    SYNC_API_TOKEN = os.getenv("SYNC_API_TOKEN")
    SYNC_METRIC_ENDPOINT = os.getenv("SYNC_METRIC_ENDPOINT", "createRingValues")
    SYNC_ECG_ENDPOINT = os.getenv("SYNC_ECG_ENDPOINT", "ecg/upload")
    SYNC_SLEEP_ENDPOINT = os.getenv("SYNC_SLEEP_ENDPOINT", "createSleepData")
    SYNC_BATCH_LIMIT = int(os.getenv("SYNC_BATCH_LIMIT", "500"))
    SYNC_TIMEOUT_SECONDS = float(os.getenv("SYNC_TIMEOUT_SECONDS", "30"))

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
